"""Configuration loading for LoadPilot.

Two layers of configuration exist:

- :class:`RunConfig` describes one load test run and is resolved from
  command-line values by :func:`resolve_run_config`.
- :class:`LoadPilotConfig` holds process-wide settings (paths, worker
  command, timeouts) read from ``LOADPILOT_*`` environment variables by
  :func:`load_config`.
"""

from __future__ import annotations

import math
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from loadpilot._internal.errors import ConfigError
from loadpilot.scenarios.catalog import WorkerType

if TYPE_CHECKING:
    from loadpilot._internal.types import CommandTemplate

DEFAULT_DURATION_MINUTES = 10.0
DEFAULT_SPAWN_INTERVAL = 15.0
DEFAULT_ENVIRONMENT = "development"
DEFAULT_MAX_WORKERS = 30

DEFAULT_WORKER_COMMAND = (
    "npx playwright test {test_file} --project=chromium --reporter=list "
    "--timeout={timeout_ms}"
)


@dataclass(frozen=True)
class RunConfig:
    """Validated parameters of a single load test run.

    Attributes:
        worker_type: Scenario every worker of this run executes.
        duration_seconds: Wall-clock budget of the spawn loop.
        spawn_interval: Seconds between spawn attempts.
        environment: Target environment tag forwarded to workers.
        max_workers: Maximum number of simultaneously active workers.
        max_runs: Stop spawning once this many workers completed.
            None means no limit.
    """

    worker_type: WorkerType
    duration_seconds: float = DEFAULT_DURATION_MINUTES * 60
    spawn_interval: float = DEFAULT_SPAWN_INTERVAL
    environment: str = DEFAULT_ENVIRONMENT
    max_workers: int = DEFAULT_MAX_WORKERS
    max_runs: int | None = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.duration_seconds) or self.duration_seconds <= 0:
            msg = f"duration must be positive and finite, got: {self.duration_seconds}"
            raise ConfigError(msg)
        if not math.isfinite(self.spawn_interval) or self.spawn_interval <= 0:
            msg = f"interval must be positive and finite, got: {self.spawn_interval}"
            raise ConfigError(msg)
        if self.max_workers < 1:
            msg = f"max workers must be >= 1, got: {self.max_workers}"
            raise ConfigError(msg)
        if self.max_runs is not None and self.max_runs < 1:
            msg = f"max runs must be >= 1, got: {self.max_runs}"
            raise ConfigError(msg)

    @property
    def expected_spawns(self) -> int:
        """Number of spawn ticks that fit into the duration budget."""
        return int(self.duration_seconds // self.spawn_interval)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable snapshot of the run parameters."""
        return {
            "type": self.worker_type.value,
            "duration": self.duration_seconds / 60,
            "durationSeconds": self.duration_seconds,
            "interval": self.spawn_interval,
            "environment": self.environment,
            "maxWorkers": self.max_workers,
            "maxRuns": self.max_runs,
        }


def _parse_float(raw: str, flag: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        msg = f"{flag} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None
    if not math.isfinite(value) or value <= 0:
        msg = f"{flag} must be positive, got: {value}"
        raise ConfigError(msg)
    return value


def _parse_int(raw: str, flag: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        msg = f"{flag} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None
    if value < 1:
        msg = f"{flag} must be >= 1, got: {value}"
        raise ConfigError(msg)
    return value


def resolve_run_config(
    worker_type: str | None,
    *,
    duration: str | None = None,
    interval: str | None = None,
    env: str | None = None,
    max_workers: str | None = None,
    max_runs: str | None = None,
) -> RunConfig:
    """Build a :class:`RunConfig` from raw command-line values.

    Args:
        worker_type: Scenario name: session, identity or financial.
        duration: Spawn loop duration in minutes (default: 10).
        interval: Seconds between spawn attempts (default: 15).
        env: Target environment tag (default: development).
        max_workers: Maximum concurrent workers (default: 30).
        max_runs: Stop after this many completed workers (default: unlimited).

    Returns:
        The validated run configuration.

    Raises:
        ConfigError: If the worker type is missing or unknown, or a numeric
            value is malformed or not positive.
    """
    if not worker_type:
        msg = f"--type is required. Choose from: {', '.join(WorkerType.choices())}"
        raise ConfigError(msg)
    try:
        resolved_type = WorkerType(worker_type.strip().lower())
    except ValueError:
        msg = (
            f"Unknown test type: {worker_type!r}. "
            f"Choose from: {', '.join(WorkerType.choices())}"
        )
        raise ConfigError(msg) from None

    duration_minutes = (
        _parse_float(duration, "--duration") if duration is not None
        else DEFAULT_DURATION_MINUTES
    )
    duration_seconds = duration_minutes * 60
    if not math.isfinite(duration_seconds):
        msg = f"--duration is too large, got: {duration!r}"
        raise ConfigError(msg)
    spawn_interval = (
        _parse_float(interval, "--interval") if interval is not None
        else DEFAULT_SPAWN_INTERVAL
    )

    environment = DEFAULT_ENVIRONMENT if env is None else env.strip()
    if not environment:
        msg = "--env must not be empty"
        raise ConfigError(msg)

    return RunConfig(
        worker_type=resolved_type,
        duration_seconds=duration_seconds,
        spawn_interval=spawn_interval,
        environment=environment,
        max_workers=(
            _parse_int(max_workers, "--max-workers") if max_workers is not None
            else DEFAULT_MAX_WORKERS
        ),
        max_runs=_parse_int(max_runs, "--max-runs") if max_runs is not None else None,
    )


@dataclass(frozen=True)
class LoadPilotConfig:
    """Global LoadPilot configuration.

    Attributes:
        project_dir: Working directory of worker processes.
        tests_dir: Directory holding the scenario spec files.
        results_dir: Shared directory workers write result files into.
        worker_command: Command template used to start a worker.
        test_timeout: Per-test timeout handed to the test runner, in seconds.
        worker_timeout: Hard process timeout; the worker is killed after it.
        drain_grace_period: Maximum seconds to wait for in-flight workers.
        drain_poll_interval: Seconds between checks while draining.
        log_json: Emit structured JSON logs.
    """

    project_dir: Path = Path()
    tests_dir: Path = Path("tests/load-testing/pipeline-tests")
    results_dir: Path = Path("tests/load-testing/results")
    worker_command: CommandTemplate = tuple(shlex.split(DEFAULT_WORKER_COMMAND))
    test_timeout: float = 600.0
    worker_timeout: float = 660.0
    drain_grace_period: float = 300.0
    drain_poll_interval: float = 5.0
    log_json: bool = False


def _env_seconds(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None
    if not math.isfinite(value) or value <= 0:
        msg = f"{name} must be positive, got: {value}"
        raise ConfigError(msg)
    return value


def load_config() -> LoadPilotConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        LOADPILOT_PROJECT_DIR: Worker working directory (default: cwd).
        LOADPILOT_TESTS_DIR: Scenario spec directory.
        LOADPILOT_RESULTS_DIR: Shared results directory.
        LOADPILOT_WORKER_COMMAND: Worker command template (shell syntax).
        LOADPILOT_TEST_TIMEOUT: Per-test timeout in seconds (default: 600).
        LOADPILOT_WORKER_TIMEOUT: Hard kill timeout in seconds (default: 660).
        LOADPILOT_DRAIN_GRACE: Drain grace period in seconds (default: 300).
        LOADPILOT_DRAIN_POLL: Drain poll interval in seconds (default: 5).
        LOADPILOT_LOG_JSON: "1"/"true" to emit JSON logs.

    Returns:
        Populated LoadPilotConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    defaults = LoadPilotConfig()

    command_str = os.environ.get("LOADPILOT_WORKER_COMMAND")
    if command_str is None:
        worker_command = defaults.worker_command
    else:
        try:
            worker_command = tuple(shlex.split(command_str))
        except ValueError as exc:
            msg = f"LOADPILOT_WORKER_COMMAND is not a valid command line: {exc}"
            raise ConfigError(msg) from None
        if not worker_command:
            msg = "LOADPILOT_WORKER_COMMAND must not be empty"
            raise ConfigError(msg)

    project_dir = Path(os.environ.get("LOADPILOT_PROJECT_DIR", str(defaults.project_dir)))

    return LoadPilotConfig(
        project_dir=project_dir,
        tests_dir=Path(os.environ.get("LOADPILOT_TESTS_DIR", str(defaults.tests_dir))),
        results_dir=Path(
            os.environ.get("LOADPILOT_RESULTS_DIR", str(defaults.results_dir))
        ),
        worker_command=worker_command,
        test_timeout=_env_seconds("LOADPILOT_TEST_TIMEOUT", defaults.test_timeout),
        worker_timeout=_env_seconds("LOADPILOT_WORKER_TIMEOUT", defaults.worker_timeout),
        drain_grace_period=_env_seconds("LOADPILOT_DRAIN_GRACE", defaults.drain_grace_period),
        drain_poll_interval=_env_seconds("LOADPILOT_DRAIN_POLL", defaults.drain_poll_interval),
        log_json=os.environ.get("LOADPILOT_LOG_JSON", "").lower() in {"1", "true", "yes"},
    )
