# Copyright (c) Syntropy Systems
"""featsweep doctor command."""

from rich.console import Console

from featsweep.combinations import enumerate_combinations
from featsweep.config import find_project_file, load_project
from featsweep.errors import ConfigError
from featsweep.runner import resolve_executable

console = Console()


def doctor() -> None:
    """Check featsweep setup and diagnose issues.

    Verifies:
    - featsweep.yaml exists
    - Feature catalog is consistent
    - Steps are configured and their executables are on PATH
    - Scratch directory is usable
    """
    issues: list[str] = []
    warnings: list[str] = []

    project_path = find_project_file()
    if project_path is None:
        console.print("[red]✗[/red] No featsweep.yaml found")
        console.print("  Run [bold]featsweep init[/bold] to create one")
        return

    console.print(f"[green]✓[/green] Project file: {project_path}")

    try:
        project = load_project(project_path)
    except ConfigError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        console.print(f"\n[red]Found 1 issue(s)[/red]\n  - {e}")
        return

    catalog = project.catalog
    console.print(f"[green]✓[/green] Catalog: {len(catalog)} features")
    if catalog.defaults:
        console.print(f"[dim]•[/dim] Default features: {', '.join(catalog.defaults)}")
    if not len(catalog):
        console.print("[yellow]⚠[/yellow] No features declared")
        warnings.append("No features declared")

    try:
        enumeration = enumerate_combinations(
            catalog, project.config.depth, exclude_empty=project.config.exclude_empty
        )
        total = sum(1 for _ in enumeration)
        console.print(
            f"[green]✓[/green] Depth {project.config.depth}: {total} combinations"
        )
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        issues.append(str(e))

    if not project.steps:
        console.print("[yellow]⚠[/yellow] No steps configured (pass a command after --)")
        warnings.append("No steps configured")

    for step in project.steps:
        executable = step.argv[0]
        found = resolve_executable(
            executable, project.root, project.config.env.get("PATH")
        )
        if found:
            console.print(f"[green]✓[/green] Step {step.name}: {found}")
        else:
            console.print(
                f"[red]✗[/red] Step {step.name}: '{executable}' not found or not executable"
            )
            issues.append(f"'{executable}' not found (step {step.name})")

    work_root = project.work_root
    try:
        work_root.mkdir(parents=True, exist_ok=True)
        console.print(f"[green]✓[/green] Scratch directory: {work_root}")
    except OSError as e:
        console.print(f"[red]✗[/red] Scratch directory unusable: {e}")
        issues.append(f"Scratch directory unusable: {e}")

    # Summary
    console.print()
    if issues:
        console.print(f"[red]Found {len(issues)} issue(s)[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
    elif warnings:
        console.print(f"[yellow]Found {len(warnings)} warning(s)[/yellow]")
        for warning in warnings:
            console.print(f"  - {warning}")
    else:
        console.print("[green]All checks passed[/green]")
