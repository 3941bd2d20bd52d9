# Copyright (c) Syntropy Systems
"""featsweep plan command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from featsweep.cli.render import EXIT_CONFIG
from featsweep.combinations import enumerate_combinations
from featsweep.config import load_project
from featsweep.errors import ConfigError
from featsweep.models.report import format_combination

console = Console()


def plan(
    depth: Optional[int] = typer.Option(
        None,
        "--depth", "-d",
        help="Largest combination size (default: from project file, else 2)",
    ),
    exclude_empty: Optional[bool] = typer.Option(
        None,
        "--exclude-empty/--include-empty",
        help="Skip the baseline build with no optional features",
    ),
    project_file: Optional[Path] = typer.Option(
        None,
        "--project", "-p",
        envvar="FEATSWEEP_PROJECT",
        help="Path to featsweep.yaml (default: search upwards)",
    ),
) -> None:
    """Preview the combinations a run would dispatch, without running anything."""
    try:
        project = load_project(project_file)
        max_depth = depth if depth is not None else project.config.depth
        skip_empty = (
            exclude_empty if exclude_empty is not None else project.config.exclude_empty
        )
        enumeration = enumerate_combinations(
            project.catalog, max_depth, exclude_empty=skip_empty
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG) from e

    table = Table(title=f"Plan: depth {max_depth}")
    table.add_column("#", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Features")

    for i, combination in enumerate(enumeration):
        table.add_row(str(i), str(len(combination)), format_combination(combination))

    stats = enumeration.stats
    console.print(table)
    console.print(f"\n[bold]{stats.yielded} combinations[/bold] would be run")
    console.print(f"  [dim]candidates:[/dim] {stats.candidates}")
    console.print(f"  [dim]conflicting:[/dim] {stats.conflicting}")
    console.print(f"  [dim]over depth:[/dim] {stats.over_depth}")
    console.print(f"  [dim]duplicate:[/dim] {stats.duplicate}")
    if stats.excluded:
        console.print(f"  [dim]excluded:[/dim] {stats.excluded}")
