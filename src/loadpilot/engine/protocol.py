"""Types exchanged between the scheduler, the launcher and the reporter."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

# Characters of stdout/stderr kept from each worker.
OUTPUT_TAIL_CHARS = 1000


@dataclass(frozen=True)
class WorkerResult:
    """Process-level outcome of one worker, as observed by the launcher.

    Attributes:
        worker_id: Identifier of the worker that produced this result.
        success: True iff the process exited with code 0.
        duration_ms: Wall-clock time from spawn to exit in milliseconds.
        exit_code: Process exit code; -1 if the process never started.
        stdout_tail: Last characters of the captured stdout.
        stderr_tail: Last characters of the captured stderr.
        error: Spawn error description, if the process could not start.
        timed_out: True if the worker was killed by the hard timeout.
    """

    worker_id: str
    success: bool
    duration_ms: int
    exit_code: int
    stdout_tail: str = ""
    stderr_tail: str = ""
    error: str | None = None
    timed_out: bool = False

    @classmethod
    def spawn_failure(cls, worker_id: str, duration_ms: int, error: str) -> WorkerResult:
        """Build the result of a worker whose process could not be started."""
        return cls(
            worker_id=worker_id,
            success=False,
            duration_ms=duration_ms,
            exit_code=-1,
            stderr_tail=error[-OUTPUT_TAIL_CHARS:],
            error=error,
        )

    def to_dict(self) -> dict[str, object]:
        """Return the camelCase JSON form used in the summary artifact."""
        return {
            "workerId": self.worker_id,
            "success": self.success,
            "durationMs": self.duration_ms,
            "exitCode": self.exit_code,
            "timedOut": self.timed_out,
            "error": self.error,
            "stdoutTail": self.stdout_tail,
            "stderrTail": self.stderr_tail,
        }


@dataclass
class WorkerHandle:
    """In-memory record of a launched worker.

    The handle is created when the scheduler decides to spawn and owns the
    asyncio task supervising the worker. ``completed`` and ``result`` are
    derived from that task, so they change exactly once, when the task
    finishes.

    Attributes:
        worker_id: Globally unique worker identifier.
        started_at: Epoch timestamp of the spawn decision.
        task: Task resolving to the worker's ``WorkerResult``.
    """

    worker_id: str
    started_at: float
    task: asyncio.Task[WorkerResult] | None = field(default=None, repr=False)

    @property
    def completed(self) -> bool:
        """Return True once the worker's task has finished."""
        return self.task is not None and self.task.done() and not self.task.cancelled()

    @property
    def result(self) -> WorkerResult | None:
        """Return the worker result, or None while the worker is running."""
        task = self.task
        if task is None or not task.done() or task.cancelled():
            return None
        return task.result()
