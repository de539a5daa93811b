"""``loadpilot run``: spawn workers on an interval with live terminal output."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from loadpilot._internal.config import load_config, resolve_run_config
from loadpilot._internal.errors import LoadPilotError
from loadpilot.cli.report import print_summary
from loadpilot.engine.runner import LoadTestRunner
from loadpilot.scenarios.catalog import WorkerType, get_profile

if TYPE_CHECKING:
    from loadpilot._internal.config import RunConfig
    from loadpilot.engine.scheduler import SchedulerTick

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Rich output
# ---------------------------------------------------------------------------


def _banner(config: RunConfig, results_dir: Path) -> Panel:
    """Build the start-of-run panel describing the configuration.

    Args:
        config: Resolved run configuration.
        results_dir: Shared results directory.

    Returns:
        Formatted Rich Panel.
    """
    profile = get_profile(config.worker_type)
    max_runs = str(config.max_runs) if config.max_runs is not None else "unlimited"
    return Panel(
        f"[bold]Test Type:[/bold]   {config.worker_type.value} ({profile.description})\n"
        f"[bold]Application:[/bold] {profile.application_name}\n"
        f"[bold]Environment:[/bold] {config.environment}\n"
        f"[bold]Duration:[/bold]    {config.duration_seconds / 60:g} minutes\n"
        f"[bold]Interval:[/bold]    {config.spawn_interval:g} seconds\n"
        f"[bold]Max Workers:[/bold] {config.max_workers}\n"
        f"[bold]Max Runs:[/bold]    {max_runs}\n"
        f"[bold]Expected:[/bold]    ~{config.expected_spawns} workers\n"
        f"[bold]Results:[/bold]     {results_dir}",
        title="LoadPilot",
        border_style="cyan",
    )


def _make_live_table(tick: SchedulerTick | None, config: RunConfig) -> Table:
    """Build a Rich table showing the state of the worker pool.

    Args:
        tick: Latest scheduler tick, or None if no tick happened yet.
        config: Run configuration.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if tick is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Phase", tick.state.name)
    table.add_row(
        "Elapsed",
        f"{tick.elapsed_seconds:.0f}s / {config.duration_seconds:.0f}s",
    )
    table.add_row("Spawned", str(tick.spawned))
    table.add_row("Active", f"{tick.active}/{config.max_workers}")
    table.add_row("Completed", str(tick.completed))
    table.add_row("Passed", str(tick.passed))
    table.add_row("Failed", str(tick.failed))
    table.add_row("Skipped Ticks", str(tick.skipped))
    return table


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    worker_type: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help=f"Test type: {', '.join(WorkerType.choices())}.",
        show_default=False,
    ),
    duration: str | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Duration of the spawn loop in minutes (default: 10).",
        metavar="MINUTES",
    ),
    interval: str | None = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between spawn attempts (default: 15).",
        metavar="SECONDS",
    ),
    env: str | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Environment: development, staging or rc (default: development).",
    ),
    max_workers: str | None = typer.Option(
        None,
        "--max-workers",
        "-m",
        help="Maximum concurrent workers (default: 30).",
        metavar="N",
    ),
    max_runs: str | None = typer.Option(
        None,
        "--max-runs",
        "-r",
        help="Stop spawning after N completed workers (default: unlimited).",
        metavar="N",
    ),
    results_dir: Path | None = typer.Option(
        None,
        "--results-dir",
        "-o",
        help="Shared results directory (default: LOADPILOT_RESULTS_DIR).",
        file_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Spawn load test workers on an interval and report the success rate."""
    try:
        config = resolve_run_config(
            worker_type,
            duration=duration,
            interval=interval,
            env=env,
            max_workers=max_workers,
            max_runs=max_runs,
        )
        settings = load_config()
        test_runner = LoadTestRunner(
            config,
            settings,
            results_dir=results_dir,
            log_level=logging.DEBUG if verbose else logging.INFO,
        )
    except LoadPilotError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        console.print("Run [bold]loadpilot run --help[/bold] for usage.")
        raise typer.Exit(code=1) from exc

    console.print(_banner(config, test_runner.results_dir))

    try:
        with Live(
            _make_live_table(None, config),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:

            def _on_tick(tick: SchedulerTick) -> None:
                live.update(_make_live_table(tick, config))

            test_runner._on_tick = _on_tick
            summary = test_runner.run()
    except LoadPilotError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    print_summary(summary, console)
    if test_runner.summary_path is not None:
        console.print(f"Summary written to [bold]{test_runner.summary_path}[/bold]")

    if not summary.passed_threshold:
        console.print(
            f"[red]Failed:[/red] Success rate {summary.results.success_rate}% "
            f"below threshold {summary.threshold:g}%"
        )
        raise typer.Exit(code=1)

    console.print(
        f"[green]Passed:[/green] Success rate {summary.results.success_rate}% "
        f"meets threshold {summary.threshold:g}%"
    )
