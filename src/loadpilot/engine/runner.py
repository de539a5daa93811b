"""Top-level load test orchestrator."""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from loadpilot._internal.config import load_config
from loadpilot._internal.errors import EngineError
from loadpilot._internal.logging import get_logger, setup_logging
from loadpilot.engine.launcher import SubprocessLauncher
from loadpilot.engine.scheduler import SpawnScheduler
from loadpilot.metrics.aggregator import summarize
from loadpilot.metrics.collector import cleanup_result_files, collect
from loadpilot.metrics.store import write_summary

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadpilot._internal.config import LoadPilotConfig, RunConfig
    from loadpilot.engine.launcher import Launcher
    from loadpilot.engine.scheduler import SchedulerTick
    from loadpilot.metrics.models import RunSummary

logger = get_logger("engine.runner")


class LoadTestRunner:
    """Orchestrates a worker-pool load test.

    Wires together: stale result cleanup, the spawn scheduler, result file
    collection, summary aggregation and the summary artifact. Provides the
    main ``run()`` method that blocks until the test completes.

    Attributes:
        config: Run configuration.
        settings: Process-wide configuration.
        results_dir: Shared results directory.
        summary_path: Path of the written summary, set by ``run()``.
    """

    def __init__(
        self,
        config: RunConfig,
        settings: LoadPilotConfig | None = None,
        *,
        launcher: Launcher | None = None,
        results_dir: Path | None = None,
        on_tick: Callable[[SchedulerTick], None] | None = None,
        log_level: int = 20,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Run configuration.
            settings: Process-wide configuration. Defaults to
                ``load_config()``.
            launcher: Worker launcher. Defaults to a SubprocessLauncher.
            results_dir: Override for ``settings.results_dir``.
            on_tick: Optional callback invoked with each SchedulerTick.
            log_level: Logging level.

        Raises:
            ConfigError: If the environment configuration is invalid.
        """
        self.config = config
        self.settings = settings if settings is not None else load_config()
        self.results_dir = Path(results_dir or self.settings.results_dir).resolve()
        self._launcher = launcher or SubprocessLauncher(
            self.settings, results_dir=self.results_dir
        )
        self._on_tick = on_tick
        self._log_level = log_level
        self.summary_path: Path | None = None

    def run(self) -> RunSummary:
        """Execute the load test and return its summary.

        This is a blocking call that runs until the duration budget is
        spent (or a stop signal is received) and in-flight workers have
        drained.

        Returns:
            RunSummary of the run. Its ``exit_code`` reflects the
            per-scenario success threshold.

        Raises:
            EngineError: If the test fails to execute.
        """
        setup_logging(level=self._log_level, json_format=self.settings.log_json)

        try:
            cleanup_result_files(self.results_dir)
            start_time = time.time()
            scheduler = asyncio.run(self._run_scheduler())
            records = collect(self.results_dir)
            summary = summarize(
                scheduler.registry.get_all(),
                records,
                self.config,
                start_time,
                incomplete=scheduler.incomplete_ids,
            )
            self.summary_path = write_summary(summary, self.results_dir)
        except Exception as exc:
            logger.exception("Load test failed")
            raise EngineError(f"Load test failed: {exc}") from exc

        logger.info(
            "Load test completed: total=%d, passed=%d, failed=%d, success_rate=%s%%, "
            "threshold=%.0f%%",
            summary.results.total,
            summary.results.passed,
            summary.results.failed,
            summary.results.success_rate,
            summary.threshold,
        )
        return summary

    async def _run_scheduler(self) -> SpawnScheduler:
        scheduler = SpawnScheduler(
            self.config,
            self._launcher,
            drain_grace_period=self.settings.drain_grace_period,
            drain_poll_interval=self.settings.drain_poll_interval,
            on_tick=self._on_tick,
        )
        self._install_signal_handlers(scheduler)
        try:
            await scheduler.run()
        finally:
            self._remove_signal_handlers()
            await scheduler.shutdown()
        return scheduler

    def _install_signal_handlers(self, scheduler: SpawnScheduler) -> None:
        """Route SIGINT and SIGTERM to a graceful stop of the scheduler."""

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            scheduler.request_stop()

        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
