"""Main Typer application: entry point for the ``loadpilot`` CLI."""

from __future__ import annotations

import typer

from loadpilot import __version__
from loadpilot.cli.report import report_cmd
from loadpilot.cli.run import run_cmd

app = typer.Typer(
    name="loadpilot",
    help="Sustained end-to-end load tests with a pool of test-runner workers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Spawn workers on an interval and report the success rate.")(run_cmd)
app.command("report", help="Print a saved load test summary.")(report_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"loadpilot {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """LoadPilot: sustained end-to-end load tests with a pool of workers."""
