# Copyright (c) Syntropy Systems
"""Pydantic models for run outcomes and reports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import Field
from typing_extensions import TypeAlias

from .base import FeatsweepBaseModel, FrozenModel

if TYPE_CHECKING:
    from pathlib import Path

Classification: TypeAlias = Literal["succeeded", "failed", "skipped"]


class RunOutcome(FrozenModel):
    """Result of dispatching one combination."""

    combination: tuple[str, ...]
    classification: Classification
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    stdout_truncated: bool = False
    stderr_truncated: bool = False
    duration: float = 0.0
    failed_step: str | None = None
    error: str | None = None

    @property
    def label(self) -> str:
        """Human-readable combination name."""
        return format_combination(self.combination)


class RunSummary(FeatsweepBaseModel):
    """Aggregate counts for one run."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failing: list[tuple[str, ...]] = Field(default_factory=list)


class EnumerationCounts(FeatsweepBaseModel):
    """What the enumerator did with every candidate subset."""

    candidates: int = 0
    yielded: int = 0
    conflicting: int = 0
    duplicate: int = 0
    over_depth: int = 0
    excluded: int = 0

    @property
    def filtered(self) -> int:
        """Candidates that were never dispatched."""
        return self.conflicting + self.duplicate + self.over_depth + self.excluded


class RunReport(FeatsweepBaseModel):
    """Everything one orchestration pass attempted, in enumeration order."""

    policy: str
    max_depth: int
    jobs: int = 1
    halted: bool = False
    outcomes: list[RunOutcome] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)
    enumeration: EnumerationCounts = Field(default_factory=EnumerationCounts)

    @property
    def ok(self) -> bool:
        """True when nothing failed."""
        return self.summary.failed == 0

    def failures(self) -> list[RunOutcome]:
        """Outcomes classified as failed, in enumeration order."""
        return [o for o in self.outcomes if o.classification == "failed"]

    @classmethod
    def load(cls, path: Path) -> RunReport:
        """Load a report from a JSON file."""
        return cls.model_validate_json(path.read_text())

    def save(self, path: Path) -> None:
        """Write the report as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(self.model_dump_json(indent=2))


def format_combination(combination: tuple[str, ...] | list[str]) -> str:
    """Render a combination for display; the empty one is the baseline."""
    if not combination:
        return "(no features)"
    return ",".join(combination)
