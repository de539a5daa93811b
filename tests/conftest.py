"""Shared test fixtures for LoadPilot test suite."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from loadpilot._internal.config import LoadPilotConfig, RunConfig
from loadpilot.engine.protocol import WorkerResult
from loadpilot.scenarios.catalog import WorkerType

if TYPE_CHECKING:
    from collections.abc import Callable


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# In-process launcher stub
# =============================================================================


@dataclass
class StubLauncher:
    """Launcher that sleeps instead of starting a process.

    Tracks how many launches overlap so tests can check the worker cap.

    Attributes:
        delay: Seconds each fake worker runs.
        success: Outcome of every fake worker.
        results_dir: If set, a result file is written per worker.
        raise_error: If set, ``launch`` raises it instead of returning.
    """

    delay: float = 0.05
    success: bool = True
    results_dir: Path | None = None
    raise_error: Exception | None = None
    launched: list[str] = field(default_factory=list)
    running: int = 0
    max_running: int = 0

    async def launch(self, worker_id: str, config: RunConfig) -> WorkerResult:
        self.launched.append(worker_id)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            await asyncio.sleep(self.delay)
            if self.raise_error is not None:
                raise self.raise_error
            if self.results_dir is not None:
                write_result_file(
                    self.results_dir,
                    worker_id,
                    status="passed" if self.success else "failed",
                    worker_type=config.worker_type.value,
                )
        finally:
            self.running -= 1
        return WorkerResult(
            worker_id=worker_id,
            success=self.success,
            duration_ms=int(self.delay * 1000),
            exit_code=0 if self.success else 1,
            stderr_tail="" if self.success else "Error: step failed",
        )


@pytest.fixture
def stub_launcher() -> StubLauncher:
    """Stub launcher whose workers succeed after 50ms."""
    return StubLauncher()


# =============================================================================
# Result files
# =============================================================================


def write_result_file(
    results_dir: Path,
    worker_id: str,
    *,
    status: str = "passed",
    worker_type: str = "session",
    session_id: str | None = "sess-1",
) -> Path:
    """Write a worker result file the way a Playwright worker does."""
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / f"load_result_{worker_id}.json"
    path.write_text(
        json.dumps(
            {
                "workerId": worker_id,
                "type": worker_type,
                "startTime": "2026-01-01T00:00:00.000Z",
                "endTime": "2026-01-01T00:03:00.000Z",
                "duration": 180000,
                "status": status,
                "sessionId": session_id,
                "applicantEmail": f"loadtest-{worker_id}@example.com",
                "stepsCompleted": ["admin_login", "session_created"],
                "errors": [] if status == "passed" else ["Timeout waiting for step"],
            }
        )
    )
    return path


@pytest.fixture
def result_writer() -> Callable[..., Path]:
    """Expose :func:`write_result_file` to test modules."""
    return write_result_file


# =============================================================================
# Real worker processes
# =============================================================================

_FAKE_WORKER = '''\
"""Fake load test worker driven by argv: <mode> <sleep seconds>."""

import json
import os
import sys
import time
from pathlib import Path

mode = sys.argv[1]
time.sleep(float(sys.argv[2]))

worker_id = os.environ["LOAD_TEST_WORKER_ID"]
results_dir = Path(os.environ["LOAD_TEST_RESULTS_DIR"])
print(
    f"worker={worker_id} type={os.environ['LOAD_TEST_TYPE']} "
    f"env={os.environ['APP_ENV']} app={os.environ['LOAD_TEST_APPLICATION']}"
)
sys.stdout.flush()

if mode == "hang":
    time.sleep(3600)
if mode == "noisy":
    print("x" * 5000)

results_dir.mkdir(parents=True, exist_ok=True)
path = results_dir / f"load_result_{worker_id}.json"
if mode == "corrupt":
    path.write_text("{not json")
elif mode != "silent":
    status = "passed" if mode in ("pass", "noisy", "liar") else "failed"
    path.write_text(json.dumps({
        "workerId": worker_id,
        "type": os.environ["LOAD_TEST_TYPE"],
        "duration": 10,
        "status": status,
        "sessionId": "sess-" + worker_id,
        "stepsCompleted": ["admin_login"],
        "errors": [] if status == "passed" else ["boom"],
    }))

if mode in ("fail", "liar"):
    print("worker failed: boom", file=sys.stderr)
    sys.exit(3)
'''


@pytest.fixture
def fake_worker_script(tmp_path: Path) -> Path:
    """Write the fake worker script and return its path."""
    path = tmp_path / "fake_worker.py"
    path.write_text(_FAKE_WORKER)
    return path


@pytest.fixture
def make_settings(
    tmp_path: Path, fake_worker_script: Path
) -> Callable[..., LoadPilotConfig]:
    """Factory for settings whose worker command runs the fake worker.

    Usage: ``make_settings("pass", sleep=0.05, worker_timeout=10.0)``.
    """

    def _make(
        mode: str = "pass",
        *,
        sleep: float = 0.05,
        worker_timeout: float = 20.0,
        drain_grace_period: float = 20.0,
    ) -> LoadPilotConfig:
        return LoadPilotConfig(
            project_dir=tmp_path,
            tests_dir=tmp_path / "pipeline-tests",
            results_dir=tmp_path / "results",
            worker_command=(sys.executable, str(fake_worker_script), mode, str(sleep)),
            test_timeout=worker_timeout,
            worker_timeout=worker_timeout,
            drain_grace_period=drain_grace_period,
            drain_poll_interval=0.05,
        )

    return _make


@pytest.fixture
def session_config() -> RunConfig:
    """Short session run: 1s budget, 0.25s interval, at most 2 workers."""
    return RunConfig(
        worker_type=WorkerType.SESSION,
        duration_seconds=1.0,
        spawn_interval=0.25,
        environment="staging",
        max_workers=2,
    )
