# Copyright (c) Syntropy Systems
"""featsweep init command."""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from featsweep.config import PROJECT_FILE

console = Console()

STARTER_PROJECT = {
    "features": [
        "std",
        {"name": "serde", "default": True},
    ],
    "conflicts": [],
    "requires": [],
    "depth": 2,
    "policy": "continue",
    "jobs": 1,
    "work_dir": ".featsweep",
    "steps": [
        {
            "name": "clippy",
            "command": (
                "cargo clippy --no-default-features --features {{features}}"
                " -- -D warnings"
            ),
        },
        {
            "name": "test",
            "command": "cargo test --no-default-features --features {{features}}",
        },
        {
            "name": "doctest",
            "command": (
                "cargo test --doc --no-default-features --features {{features}}"
            ),
        },
    ],
}


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Create a starter featsweep.yaml.

    Edit the feature list and steps to match your project.
    """
    target = path.resolve()
    project_path = target / PROJECT_FILE

    if project_path.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {project_path}")
        return

    target.mkdir(parents=True, exist_ok=True)
    with project_path.open("w") as f:
        yaml.safe_dump(STARTER_PROJECT, f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Initialized featsweep project:[/green] {project_path}")
    console.print("  [dim]next:[/dim] edit features and steps, then run [bold]featsweep plan[/bold]")
