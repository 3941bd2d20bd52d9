# Copyright (c) Syntropy Systems
"""featsweep show command."""
from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from featsweep.cli.render import (
    EXIT_CONFIG,
    exit_code_for,
    format_duration,
    print_failures,
    print_summary,
)
from featsweep.models.report import RunReport, format_combination

console = Console()

_STATUS_STYLE = {
    "succeeded": "green",
    "failed": "red",
    "skipped": "yellow",
}


def show(
    report_path: Path = typer.Argument(
        ...,
        help="Report JSON written by 'featsweep run --report'",
        exists=True,
        dir_okay=False,
    ),
    failed_only: bool = typer.Option(
        False,
        "--failed", "-f",
        help="Only list failing combinations",
    ),
) -> None:
    """Render a saved run report.

    Exits with the same code the run did.
    """
    try:
        report = RunReport.load(report_path)
    except (OSError, ValidationError) as e:
        console.print(f"[red]Error loading report:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG) from e

    table = Table(title=f"Report: {report_path.name}")
    table.add_column("#", style="dim")
    table.add_column("Features")
    table.add_column("Status")
    table.add_column("Exit", justify="right")
    table.add_column("Duration", justify="right")

    for i, outcome in enumerate(report.outcomes):
        if failed_only and outcome.classification != "failed":
            continue
        style = _STATUS_STYLE.get(outcome.classification, "white")
        table.add_row(
            str(i),
            format_combination(outcome.combination),
            f"[{style}]{outcome.classification}[/{style}]",
            str(outcome.exit_code),
            format_duration(outcome.duration),
        )

    console.print(table)
    console.print(
        f"  [dim]policy:[/dim] {report.policy}  "
        f"[dim]depth:[/dim] {report.max_depth}  "
        f"[dim]jobs:[/dim] {report.jobs}"
    )
    print_summary(console, report)
    print_failures(console, report)

    code = exit_code_for(report)
    if code:
        raise typer.Exit(code)
