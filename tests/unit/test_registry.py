"""Tests for the worker registry and worker handles."""

from __future__ import annotations

import asyncio

import pytest

from loadpilot.engine.protocol import WorkerHandle, WorkerResult
from loadpilot.engine.registry import WorkerRegistry


async def _finish(result: WorkerResult) -> WorkerResult:
    return result


def _handle(worker_id: str, *, success: bool | None) -> WorkerHandle:
    """Create a handle; ``success=None`` leaves the worker running."""
    handle = WorkerHandle(worker_id=worker_id, started_at=0.0)
    if success is None:
        handle.task = asyncio.create_task(asyncio.sleep(60))  # type: ignore[arg-type]
    else:
        result = WorkerResult(
            worker_id=worker_id,
            success=success,
            duration_ms=10,
            exit_code=0 if success else 1,
        )
        handle.task = asyncio.create_task(_finish(result))
    return handle


class TestWorkerHandle:
    """Tests for the WorkerHandle dataclass."""

    def test_without_task_is_not_completed(self) -> None:
        handle = WorkerHandle(worker_id="w-1", started_at=0.0)
        assert handle.completed is False
        assert handle.result is None

    async def test_result_after_task_finishes(self) -> None:
        handle = _handle("w-1", success=True)
        assert handle.completed is False
        await handle.task
        assert handle.completed is True
        assert handle.result is not None
        assert handle.result.success is True

    async def test_cancelled_task_is_not_completed(self) -> None:
        handle = _handle("w-1", success=None)
        handle.task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await handle.task
        assert handle.completed is False
        assert handle.result is None


class TestWorkerResult:
    """Tests for the WorkerResult dataclass."""

    def test_spawn_failure(self) -> None:
        result = WorkerResult.spawn_failure("w-1", 5, "Failed to start 'npx'")
        assert result.success is False
        assert result.exit_code == -1
        assert result.error == "Failed to start 'npx'"
        assert result.stderr_tail == "Failed to start 'npx'"

    def test_to_dict_uses_camel_case(self) -> None:
        data = WorkerResult("w-1", True, 1200, 0).to_dict()
        assert data["workerId"] == "w-1"
        assert data["durationMs"] == 1200
        assert data["exitCode"] == 0
        assert data["timedOut"] is False


class TestWorkerRegistry:
    """Tests for the WorkerRegistry class."""

    def test_empty(self) -> None:
        registry = WorkerRegistry()
        assert len(registry) == 0
        assert registry.active_count == 0
        assert registry.completed_count == 0
        assert registry.get("missing") is None

    def test_duplicate_id_raises(self) -> None:
        registry = WorkerRegistry()
        registry.add(WorkerHandle(worker_id="w-1", started_at=0.0))
        with pytest.raises(ValueError, match="Duplicate worker id"):
            registry.add(WorkerHandle(worker_id="w-1", started_at=1.0))

    def test_keeps_spawn_order(self) -> None:
        registry = WorkerRegistry()
        for worker_id in ("w-3", "w-1", "w-2"):
            registry.add(WorkerHandle(worker_id=worker_id, started_at=0.0))
        assert [h.worker_id for h in registry.get_all()] == ["w-3", "w-1", "w-2"]
        assert "w-1" in registry
        assert "w-9" not in registry

    async def test_counts(self) -> None:
        registry = WorkerRegistry()
        passed = _handle("w-1", success=True)
        failed = _handle("w-2", success=False)
        running = _handle("w-3", success=None)
        for handle in (passed, failed, running):
            registry.add(handle)

        await asyncio.gather(passed.task, failed.task)

        assert registry.active_count == 1
        assert registry.completed_count == 2
        assert registry.passed_count == 1
        assert [h.worker_id for h in registry.pending()] == ["w-3"]

        running.task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running.task
