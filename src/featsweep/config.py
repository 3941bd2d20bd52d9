# Copyright (c) Syntropy Systems
"""Configuration management for featsweep."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError

from featsweep.catalog import Feature, build_catalog
from featsweep.errors import ProjectFileError
from featsweep.models.project import ProjectFile
from featsweep.runner import CommandStep, ShellCommandRunner

if TYPE_CHECKING:
    from featsweep.catalog import FeatureCatalog

logger = logging.getLogger(__name__)

PROJECT_FILE = "featsweep.yaml"


@dataclass
class FeatsweepConfig:
    """Runtime settings for a run."""

    # Largest combination size to dispatch
    depth: int = 2

    # "continue" or "fail-fast"
    policy: str = "continue"

    # Combinations dispatched concurrently
    jobs: int = 1

    # Per-step timeout in seconds (None = no limit)
    timeout: float | None = None

    # Captured stdout/stderr kept per combination (tail)
    max_output_bytes: int = 64 * 1024

    # Skip the baseline build with no optional features
    exclude_empty: bool = False

    # Grace period before SIGKILL after SIGTERM (seconds)
    kill_grace_period: float = 10.0

    # Scratch root, relative to the project directory
    work_dir: str = ".featsweep"

    # Extra environment variables for every step
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class Project:
    """A loaded project: its catalog, steps and settings."""

    path: Path
    catalog: FeatureCatalog
    steps: list[CommandStep]
    config: FeatsweepConfig

    @property
    def root(self) -> Path:
        """Directory holding the project file."""
        return self.path.parent

    @property
    def work_root(self) -> Path:
        """Absolute scratch root."""
        return self.root / self.config.work_dir


def find_project_file(start_path: Path | None = None) -> Path | None:
    """Find the nearest featsweep.yaml by walking up from start_path.

    Returns None if no project file is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        candidate = current / PROJECT_FILE
        if candidate.is_file():
            return candidate
        current = current.parent

    # Check root
    candidate = current / PROJECT_FILE
    if candidate.is_file():
        return candidate

    return None


def require_project_file(path: Path | None = None) -> Path:
    """Get the project file or raise an error if not found."""
    if path is not None:
        if not path.is_file():
            msg = f"Project file not found: {path}"
            raise ProjectFileError(msg)
        return path

    found = find_project_file()
    if found is None:
        msg = f"No {PROJECT_FILE} found. Run 'featsweep init' first."
        raise ProjectFileError(msg)
    return found


def read_project_file(path: Path) -> ProjectFile:
    """Parse and validate a project file.

    Raises:
        ProjectFileError: The file is unreadable, not YAML, or does not
            match the schema.

    """
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        msg = f"Could not read {path}: {e}"
        raise ProjectFileError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {path}: {e}"
        raise ProjectFileError(msg) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping at the top level"
        raise ProjectFileError(msg)

    try:
        return ProjectFile.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid project file {path}:\n{e}"
        raise ProjectFileError(msg) from e


def load_project(path: Path | None = None) -> Project:
    """Load the project file and build its catalog.

    Looks for the project file in:
    1. Provided path
    2. Nearest featsweep.yaml walking up from the current directory

    Raises:
        ConfigError: The project file is missing or malformed, or its
            features are inconsistent.

    """
    project_path = require_project_file(path).resolve()
    data = read_project_file(project_path)
    logger.debug("Loaded project file %s", project_path)

    catalog = build_catalog(
        [
            Feature(
                name=entry.name,
                default=entry.default,
                conflicts=frozenset(entry.conflicts),
                requires=frozenset(entry.requires),
            )
            for entry in data.features
        ],
        conflicts=data.conflicts,
        requires=data.requires,
    )

    try:
        steps = [CommandStep.parse(step.name, step.command) for step in data.steps]
    except ValueError as e:
        msg = f"Invalid step in {project_path}: {e}"
        raise ProjectFileError(msg) from e

    config = FeatsweepConfig()
    if data.depth is not None:
        config.depth = data.depth
    if data.policy is not None:
        config.policy = data.policy
    if data.jobs is not None:
        config.jobs = data.jobs
    if data.timeout is not None:
        config.timeout = data.timeout
    if data.max_output_bytes is not None:
        config.max_output_bytes = data.max_output_bytes
    if data.exclude_empty is not None:
        config.exclude_empty = data.exclude_empty
    if data.work_dir is not None:
        config.work_dir = data.work_dir
    config.env = dict(data.env)

    return Project(path=project_path, catalog=catalog, steps=steps, config=config)


def build_runner(
    project: Project,
    command: list[str] | None = None,
) -> ShellCommandRunner:
    """Create the runner for a project.

    ``command`` replaces the configured steps with a single step.

    Raises:
        ProjectFileError: No command given and no steps configured.

    """
    if command:
        steps = [CommandStep(name="command", argv=list(command))]
    elif project.steps:
        steps = project.steps
    else:
        msg = f"No steps configured in {project.path.name} and no command given"
        raise ProjectFileError(msg)

    return ShellCommandRunner(
        steps,
        project.work_root,
        workdir=project.root,
        env=project.config.env,
        timeout=project.config.timeout,
        kill_grace_period=project.config.kill_grace_period,
        defaults=project.catalog.defaults,
        max_output_bytes=project.config.max_output_bytes,
    )
