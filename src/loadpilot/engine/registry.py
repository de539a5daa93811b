"""In-memory registry of launched workers keyed by worker id."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loadpilot.engine.protocol import WorkerHandle


class WorkerRegistry:
    """Storage for the ``WorkerHandle`` objects of one run.

    Handles are kept in spawn order and are never removed, so the final
    summary sees every worker that was launched. The registry is owned by
    the event loop driving the scheduler and is not shared across threads.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._handles: dict[str, WorkerHandle] = {}

    def add(self, handle: WorkerHandle) -> None:
        """Register a newly spawned worker.

        Args:
            handle: Handle of the worker.

        Raises:
            ValueError: If a worker with the same id is already registered.
        """
        if handle.worker_id in self._handles:
            msg = f"Duplicate worker id: {handle.worker_id}"
            raise ValueError(msg)
        self._handles[handle.worker_id] = handle

    def get(self, worker_id: str) -> WorkerHandle | None:
        """Return the handle for ``worker_id``, or None if unknown."""
        return self._handles.get(worker_id)

    def get_all(self) -> list[WorkerHandle]:
        """Return a copy of all handles in spawn order."""
        return list(self._handles.values())

    def pending(self) -> list[WorkerHandle]:
        """Return handles whose workers are still running."""
        return [h for h in self._handles.values() if not h.completed]

    @property
    def active_count(self) -> int:
        """Number of workers that have not completed yet."""
        return sum(1 for h in self._handles.values() if not h.completed)

    @property
    def completed_count(self) -> int:
        """Number of workers that have completed, successfully or not."""
        return sum(1 for h in self._handles.values() if h.completed)

    @property
    def passed_count(self) -> int:
        """Number of completed workers that exited successfully."""
        return sum(
            1 for h in self._handles.values()
            if h.result is not None and h.result.success
        )

    def __len__(self) -> int:
        """Return the number of registered workers."""
        return len(self._handles)

    def __contains__(self, worker_id: object) -> bool:
        return worker_id in self._handles
