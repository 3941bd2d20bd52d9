# Copyright (c) Syntropy Systems
"""featsweep run command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from featsweep.cli.render import (
    EXIT_CONFIG,
    exit_code_for,
    outcome_line,
    print_failures,
    print_summary,
)
from featsweep.combinations import enumerate_combinations
from featsweep.config import build_runner, load_project
from featsweep.errors import ConfigError
from featsweep.orchestrator import Orchestrator, Policy

console = Console()


def run(
    ctx: typer.Context,
    depth: Optional[int] = typer.Option(
        None,
        "--depth", "-d",
        help="Largest combination size (default: from project file, else 2)",
    ),
    fail_fast: Optional[bool] = typer.Option(
        None,
        "--fail-fast/--continue",
        help="Stop after the first failing combination",
    ),
    jobs: Optional[int] = typer.Option(
        None,
        "--jobs", "-j",
        min=1,
        help="Combinations to run concurrently",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout", "-t",
        help="Per-step timeout in seconds",
    ),
    exclude_empty: Optional[bool] = typer.Option(
        None,
        "--exclude-empty/--include-empty",
        help="Skip the baseline build with no optional features",
    ),
    report_path: Optional[Path] = typer.Option(
        None,
        "--report", "-o",
        help="Write the run report as JSON",
    ),
    project_file: Optional[Path] = typer.Option(
        None,
        "--project", "-p",
        envvar="FEATSWEEP_PROJECT",
        help="Path to featsweep.yaml (default: search upwards)",
    ),
) -> None:
    """
    Run the configured steps for every feature combination.

    Use -- to replace the configured steps with a single command:

        featsweep run -- cargo check --no-default-features --features {{features}}

    Template variables:
        {{features}} - Comma-joined combination
        {{features_space}} - Space-joined combination
        {{defaults}} - Comma-joined default features
        {{scratch_dir}} - Isolated directory for this combination
        {{slug}} - File-system-safe combination name

    Exit codes: 0 all passed, 1 failures, 2 halted by --fail-fast,
    3 configuration error.
    """
    command_argv = list(ctx.args)

    try:
        project = load_project(project_file)
        config = project.config
        if depth is not None:
            config.depth = depth
        if fail_fast is not None:
            config.policy = Policy.FAIL_FAST.value if fail_fast else Policy.CONTINUE_ON_FAILURE.value
        if jobs is not None:
            config.jobs = jobs
        if timeout is not None:
            config.timeout = timeout
        if exclude_empty is not None:
            config.exclude_empty = exclude_empty

        runner = build_runner(project, command_argv or None)
        enumeration = enumerate_combinations(
            project.catalog, config.depth, exclude_empty=config.exclude_empty
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG) from e

    console.print(f"[bold]Project:[/bold] {project.path}")
    console.print(
        f"  [dim]features:[/dim] {len(project.catalog)}  "
        f"[dim]depth:[/dim] {config.depth}  "
        f"[dim]policy:[/dim] {config.policy}  "
        f"[dim]jobs:[/dim] {config.jobs}"
    )
    console.print(f"  [dim]steps:[/dim] {', '.join(s.name for s in runner.steps)}\n")

    orchestrator = Orchestrator(
        enumeration,
        Policy(config.policy),
        runner,
        jobs=config.jobs,
        max_output_bytes=config.max_output_bytes,
        on_outcome=lambda outcome: console.print(outcome_line(outcome)),
    )
    report = orchestrator.run()

    console.print()
    print_summary(console, report)
    print_failures(console, report)

    if report_path is not None:
        report.save(report_path)
        console.print(f"\n[dim]Report written to[/dim] {report_path}")

    code = exit_code_for(report)
    if code:
        raise typer.Exit(code)
