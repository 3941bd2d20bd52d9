# Copyright (c) Syntropy Systems
"""Terminal rendering shared by featsweep commands."""
from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

from featsweep.models.report import format_combination

if TYPE_CHECKING:
    from rich.console import Console

    from featsweep.models.report import RunOutcome, RunReport

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_HALTED = 2
EXIT_CONFIG = 3

STDERR_TAIL_LINES = 20


def format_duration(seconds: float | None) -> str:
    """Format duration in seconds to human readable."""
    if seconds is None:
        return "-"

    if seconds < 10:
        return f"{seconds:.1f}s"
    total = int(seconds)
    if total < 60:
        return f"{total}s"
    if total < 3600:
        m, s = divmod(total, 60)
        return f"{m}m {s}s"
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h}h {m}m"


def outcome_line(outcome: RunOutcome) -> str:
    """One progress line for an outcome."""
    label = format_combination(outcome.combination)
    duration = format_duration(outcome.duration)
    if outcome.classification == "succeeded":
        return f"[green]✓[/green] {label} [dim]{duration}[/dim]"
    if outcome.classification == "skipped":
        return f"[yellow]⚠[/yellow] {label} [dim]skipped[/dim]"
    detail = f"exit {outcome.exit_code}"
    if outcome.failed_step:
        detail = f"step {outcome.failed_step}, {detail}"
    if outcome.error:
        detail = "could not launch"
    return f"[red]✗[/red] {label} [dim]({detail}, {duration})[/dim]"


def nothing_ran(report: RunReport) -> bool:
    """True when combinations were attempted but every one was skipped."""
    summary = report.summary
    return summary.attempted > 0 and summary.skipped == summary.attempted


def exit_code_for(report: RunReport) -> int:
    """CLI exit code: 0 all passed, 1 failures, 2 halted by fail-fast."""
    if report.halted:
        return EXIT_HALTED
    if report.summary.failed:
        return EXIT_FAILED
    return EXIT_OK


def print_summary(console: Console, report: RunReport) -> None:
    """Print aggregate counts."""
    summary = report.summary
    table = Table(title="Summary", show_header=True, header_style="bold")
    table.add_column("Attempted", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_row(
        str(summary.attempted),
        str(summary.succeeded),
        str(summary.failed),
        str(summary.skipped),
    )
    console.print(table)

    counts = report.enumeration
    if counts.filtered:
        console.print(
            f"  [dim]filtered:[/dim] {counts.conflicting} conflicting, "
            f"{counts.over_depth} over depth, {counts.duplicate} duplicate, "
            f"{counts.excluded} excluded"
        )
    if report.halted:
        console.print("[yellow]Halted after first failure (fail-fast)[/yellow]")
    if nothing_ran(report):
        console.print(
            "[yellow]⚠ Every combination was skipped: nothing was built. "
            "Run 'featsweep doctor' to check the steps.[/yellow]"
        )


def print_failures(console: Console, report: RunReport) -> None:
    """Print each failing combination with the tail of its stderr."""
    failures = report.failures()
    if not failures:
        return

    console.print(f"\n[bold red]{len(failures)} failing combination(s)[/bold red]")
    for outcome in failures:
        features = ", ".join(outcome.combination) or "(no features)"
        console.print(f"\n[bold]{features}[/bold]")
        if outcome.failed_step:
            console.print(f"  [dim]step:[/dim] {outcome.failed_step}")
        console.print(f"  [dim]exit code:[/dim] {outcome.exit_code}")

        lines = outcome.stderr.rstrip().splitlines()
        if not lines:
            continue
        if outcome.stderr_truncated or len(lines) > STDERR_TAIL_LINES:
            console.print("  [dim]... (stderr truncated)[/dim]")
        for line in lines[-STDERR_TAIL_LINES:]:
            console.print(f"  {line}", markup=False, highlight=False)
