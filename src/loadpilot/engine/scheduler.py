"""Spawn scheduler: launches workers on a fixed interval under a worker cap."""

from __future__ import annotations

import asyncio
import contextlib
import random
import string
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from loadpilot._internal.logging import get_logger
from loadpilot.engine.protocol import WorkerHandle, WorkerResult
from loadpilot.engine.registry import WorkerRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadpilot._internal.config import RunConfig
    from loadpilot.engine.launcher import Launcher

logger = get_logger("engine.scheduler")

_ID_ALPHABET = string.ascii_lowercase + string.digits


class SchedulerState(Enum):
    """State machine of the spawn scheduler."""

    CREATED = auto()
    RUNNING = auto()
    DRAINING = auto()
    DONE = auto()


@dataclass(frozen=True)
class SchedulerTick:
    """Point-in-time view of the worker pool, emitted after every tick.

    Attributes:
        state: Scheduler state when the tick was emitted.
        elapsed_seconds: Seconds since the scheduler started.
        spawned: Workers launched so far.
        active: Workers still running.
        completed: Workers that finished, successfully or not.
        passed: Completed workers that exited successfully.
        skipped: Ticks skipped because the worker cap was reached.
    """

    state: SchedulerState
    elapsed_seconds: float
    spawned: int
    active: int
    completed: int
    passed: int
    skipped: int

    @property
    def failed(self) -> int:
        """Completed workers that did not exit successfully."""
        return self.completed - self.passed


def generate_worker_id(worker_type: str) -> str:
    """Return a worker id of the form ``<type>-<epoch ms>-<6 random chars>``.

    Args:
        worker_type: Worker type name used as the id prefix.

    Returns:
        A new worker id.
    """
    suffix = "".join(random.choices(_ID_ALPHABET, k=6))  # noqa: S311
    return f"{worker_type}-{int(time.time() * 1000)}-{suffix}"


class SpawnScheduler:
    """Launches one worker per tick while the duration budget lasts.

    State machine: CREATED -> RUNNING -> DRAINING -> DONE

    RUNNING
        Ticks are scheduled at ``start + n * spawn_interval``. On each tick
        the scheduler stops if ``max_runs`` workers have completed, and
        otherwise spawns a worker if fewer than ``max_workers`` are active.
        A tick at the cap is dropped, not queued. Spawned workers run as
        background tasks; the loop never waits for a single worker.
    DRAINING
        No more spawns. Waits for in-flight workers, checking every
        ``drain_poll_interval`` seconds, for at most ``drain_grace_period``
        seconds. Workers still running afterwards are reported through
        :attr:`incomplete_ids`.
    DONE
        Terminal.

    Attributes:
        config: Run configuration.
        registry: Handles of every launched worker.
        incomplete_ids: Workers still running when draining gave up.
        peak_active: Highest number of simultaneously active workers seen.
        spawn_phase_seconds: Seconds spent in RUNNING.
    """

    def __init__(
        self,
        config: RunConfig,
        launcher: Launcher,
        *,
        drain_grace_period: float = 300.0,
        drain_poll_interval: float = 5.0,
        on_tick: Callable[[SchedulerTick], None] | None = None,
        id_factory: Callable[[str], str] = generate_worker_id,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Run configuration.
            launcher: Launcher used to execute each worker.
            drain_grace_period: Maximum seconds to wait for in-flight workers.
            drain_poll_interval: Seconds between checks while draining.
            on_tick: Optional callback invoked with a SchedulerTick after
                every spawn tick and every drain poll.
            id_factory: Builds a worker id from the worker type name.
        """
        self.config = config
        self.registry = WorkerRegistry()
        self.incomplete_ids: list[str] = []
        self.peak_active = 0
        self.spawn_phase_seconds = 0.0

        self._launcher = launcher
        self._drain_grace_period = drain_grace_period
        self._drain_poll_interval = drain_poll_interval
        self._on_tick = on_tick
        self._id_factory = id_factory

        self._state = SchedulerState.CREATED
        self._stop_event = asyncio.Event()
        self._start = 0.0
        self._skipped = 0

    @property
    def state(self) -> SchedulerState:
        """Return the current scheduler state."""
        return self._state

    def request_stop(self) -> None:
        """Stop spawning and move to DRAINING at the next opportunity."""
        if self._state in (SchedulerState.CREATED, SchedulerState.RUNNING):
            logger.info("Stop requested, no further workers will be spawned")
            self._stop_event.set()

    async def run(self) -> WorkerRegistry:
        """Run the spawn loop and the drain phase.

        Returns:
            The registry holding every launched worker.
        """
        self._state = SchedulerState.RUNNING
        self._start = time.monotonic()
        logger.info(
            "Spawn loop started: type=%s, duration=%.1fs, interval=%.1fs, max_workers=%d",
            self.config.worker_type.value,
            self.config.duration_seconds,
            self.config.spawn_interval,
            self.config.max_workers,
        )

        reached_budget = await self._spawn_loop()
        if reached_budget:
            await self._wait_until(self._start + self.config.duration_seconds)
            logger.info("Duration limit reached. Waiting for remaining workers...")

        self.spawn_phase_seconds = time.monotonic() - self._start
        self._state = SchedulerState.DRAINING
        await self._drain()

        self._state = SchedulerState.DONE
        self._emit_tick()
        return self.registry

    async def shutdown(self) -> None:
        """Cancel workers that are still running, killing their processes."""
        pending = [h.task for h in self.registry.pending() if h.task is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending, timeout=10.0)
            logger.info("Cancelled %d unfinished workers", len(pending))

    async def _spawn_loop(self) -> bool:
        """Run spawn ticks; return True if the loop ended on the duration budget."""
        config = self.config
        tick = 0

        while tick * config.spawn_interval < config.duration_seconds:
            if tick > 0:
                await self._wait_until(self._start + tick * config.spawn_interval)

            if self._stop_event.is_set():
                return False
            if time.monotonic() - self._start >= config.duration_seconds:
                break

            completed = self.registry.completed_count
            if config.max_runs is not None and completed >= config.max_runs:
                logger.info(
                    "Max runs reached (%d/%d), stopping spawns",
                    completed,
                    config.max_runs,
                )
                return False

            active = self.registry.active_count
            if active < config.max_workers:
                self._spawn(active)
            else:
                self._skipped += 1
                logger.info(
                    "Max workers reached (%d/%d), skipping spawn",
                    active,
                    config.max_workers,
                )

            self._emit_tick()
            tick += 1

        return True

    def _spawn(self, active: int) -> None:
        worker_id = self._id_factory(self.config.worker_type.value)
        while worker_id in self.registry:
            worker_id = self._id_factory(self.config.worker_type.value)

        handle = WorkerHandle(worker_id=worker_id, started_at=time.time())
        handle.task = asyncio.create_task(
            self._run_worker(worker_id),
            name=f"worker-{worker_id}",
        )
        self.registry.add(handle)
        self.peak_active = max(self.peak_active, active + 1)

        logger.info(
            "[Spawn #%d] Active workers: %d/%d",
            len(self.registry),
            active,
            self.config.max_workers,
        )

    async def _run_worker(self, worker_id: str) -> WorkerResult:
        start = time.monotonic()
        try:
            return await self._launcher.launch(worker_id, self.config)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Launcher raised for worker %s", worker_id)
            return WorkerResult.spawn_failure(
                worker_id,
                int((time.monotonic() - start) * 1000),
                f"{type(exc).__name__}: {exc}",
            )

    async def _drain(self) -> None:
        deadline = time.monotonic() + self._drain_grace_period

        while pending := self.registry.pending():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.incomplete_ids = [h.worker_id for h in pending]
                logger.warning(
                    "Grace period of %.0fs expired with %d workers still running: %s",
                    self._drain_grace_period,
                    len(pending),
                    ", ".join(self.incomplete_ids),
                )
                return

            logger.info("Waiting for %d workers to complete...", len(pending))
            tasks = [h.task for h in pending if h.task is not None]
            if not tasks:
                return
            await asyncio.wait(tasks, timeout=min(self._drain_poll_interval, remaining))
            self._emit_tick()

    async def _wait_until(self, target: float) -> None:
        """Sleep until the monotonic time ``target`` or until a stop request."""
        while not self._stop_event.is_set():
            remaining = target - time.monotonic()
            if remaining <= 0:
                return
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)

    def _emit_tick(self) -> None:
        registry = self.registry
        completed = registry.completed_count
        active = registry.active_count
        logger.debug(
            "Tick %.1fs: spawned=%d, active=%d, completed=%d",
            time.monotonic() - self._start,
            len(registry),
            active,
            completed,
        )
        if self._on_tick is None:
            return
        self._on_tick(
            SchedulerTick(
                state=self._state,
                elapsed_seconds=time.monotonic() - self._start,
                spawned=len(registry),
                active=active,
                completed=completed,
                passed=registry.passed_count,
                skipped=self._skipped,
            )
        )
