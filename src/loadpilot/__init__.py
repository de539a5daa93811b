"""LoadPilot: sustained end-to-end load tests with a pool of test-runner workers."""

from __future__ import annotations

from loadpilot._internal.config import RunConfig, resolve_run_config
from loadpilot.engine.launcher import Launcher, SubprocessLauncher
from loadpilot.engine.protocol import WorkerHandle, WorkerResult
from loadpilot.engine.runner import LoadTestRunner
from loadpilot.engine.scheduler import SchedulerState, SpawnScheduler
from loadpilot.metrics.models import RunSummary, WorkerResultRecord
from loadpilot.scenarios.catalog import WorkerType

__version__ = "0.1.0"

__all__ = [
    "Launcher",
    "LoadTestRunner",
    "RunConfig",
    "RunSummary",
    "SchedulerState",
    "SpawnScheduler",
    "SubprocessLauncher",
    "WorkerHandle",
    "WorkerResult",
    "WorkerResultRecord",
    "WorkerType",
    "resolve_run_config",
]
