"""``loadpilot report``: print a saved load test summary."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

from loadpilot._internal.errors import LoadPilotError
from loadpilot.metrics.store import read_summary

if TYPE_CHECKING:
    from loadpilot.metrics.models import RunSummary

console = Console(stderr=True)


def _seconds(ms: int) -> str:
    return f"{ms / 1000:.1f}s"


def print_summary(summary: RunSummary, out: Console) -> None:
    """Print the summary tables of a run.

    Args:
        summary: Summary to render.
        out: Console to print to.
    """
    results = summary.results
    timing = summary.timing

    table = Table(
        title="Load Test Summary",
        show_header=True,
        header_style="bold green" if summary.passed_threshold else "bold red",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Test Type", summary.test_type)
    table.add_row("Environment", summary.environment)
    duration = summary.config.get("duration")
    if isinstance(duration, int | float):
        table.add_row("Duration", f"{duration:g} minutes")
    interval = summary.config.get("interval")
    if isinstance(interval, int | float):
        table.add_row("Interval", f"{interval:g} seconds")
    table.add_row("Total Workers", str(results.total))
    table.add_row("Passed", f"{results.passed} ({results.success_rate}%)")
    table.add_row("Failed", str(results.failed))
    if summary.incomplete:
        table.add_row("Incomplete", str(len(summary.incomplete)))
    table.add_row("Avg Duration", _seconds(timing.avg_duration))
    table.add_row("Min Duration", _seconds(timing.min_duration))
    table.add_row("Max Duration", _seconds(timing.max_duration))
    table.add_row("p95 Duration", _seconds(timing.p95_duration))
    table.add_row("Threshold", f"{summary.threshold:g}%")

    failed = [w for w in summary.workers if not w.success]
    if failed:
        out.print()
        fail_table = Table(
            title="Failed Workers",
            show_header=True,
            header_style="bold red",
            expand=True,
        )
        fail_table.add_column("Worker")
        fail_table.add_column("Exit", justify="right")
        fail_table.add_column("Duration", justify="right")
        fail_table.add_column("Last Step")
        fail_table.add_column("Error")

        for w in failed:
            if w.timed_out:
                reason = "timed out"
            elif w.error:
                reason = w.error
            elif w.errors:
                reason = w.errors[-1]
            else:
                reason = ""
            fail_table.add_row(
                w.worker_id,
                str(w.exit_code),
                _seconds(w.duration_ms),
                w.steps_completed[-1] if w.steps_completed else "-",
                reason,
            )
        out.print(fail_table)

    out.print(table)


def report_cmd(
    summary_file: Path = typer.Argument(
        ...,
        help="Summary JSON file, or the results directory containing it.",
        exists=True,
        readable=True,
    ),
) -> None:
    """Print a previously saved summary and exit with its verdict."""
    try:
        summary = read_summary(summary_file)
    except LoadPilotError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    print_summary(summary, console)
    raise typer.Exit(code=summary.exit_code)
