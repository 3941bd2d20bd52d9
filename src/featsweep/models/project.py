# Copyright (c) Syntropy Systems
"""Pydantic models for the featsweep.yaml project file."""

from __future__ import annotations

from typing import Literal, cast

from pydantic import Field, model_validator

from .base import FeatsweepBaseModel


class FeatureEntry(FeatsweepBaseModel):
    """A feature declared in the project file.

    Accepts either a bare name or a mapping with ``name`` and optional
    ``default``, ``conflicts`` and ``requires``.
    """

    name: str
    default: bool = False
    conflicts: list[str] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _wrap_name(cls, data: object) -> object:
        if isinstance(data, str):
            return {"name": data}
        return cast("object", data)


class StepEntry(FeatsweepBaseModel):
    """A named command run for every combination."""

    name: str
    command: str


class ProjectFile(FeatsweepBaseModel):
    """Top-level schema of featsweep.yaml."""

    features: list[FeatureEntry] = Field(default_factory=list)
    conflicts: list[tuple[str, str]] = Field(default_factory=list)
    requires: list[tuple[str, str]] = Field(default_factory=list)
    steps: list[StepEntry] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)

    depth: int | None = None
    policy: Literal["fail-fast", "continue"] | None = None
    jobs: int | None = Field(default=None, ge=1)
    timeout: float | None = Field(default=None, gt=0)
    max_output_bytes: int | None = Field(default=None, ge=0)
    exclude_empty: bool | None = None
    work_dir: str | None = None
