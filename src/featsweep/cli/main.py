# Copyright (c) Syntropy Systems
"""Main CLI entry point for featsweep."""

import logging

import typer

from featsweep.cli.doctor import doctor
from featsweep.cli.init_cmd import init
from featsweep.cli.plan import plan
from featsweep.cli.run import run
from featsweep.cli.show import show

app = typer.Typer(
    name="featsweep",
    help=(
        "Feature-powerset build orchestration. Run build and test steps "
        "across feature combinations and find the ones that break."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Log dispatch details to stderr",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register commands
_ = app.command()(init)
_ = app.command()(plan)
_ = app.command(
    context_settings={"allow_extra_args": True, "allow_interspersed_args": False}
)(run)
_ = app.command()(show)
_ = app.command()(doctor)


if __name__ == "__main__":
    app()
