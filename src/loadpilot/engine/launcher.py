"""Worker process launcher.

A launcher runs exactly one worker and reports its process-level outcome.
It never raises for expected failures: processes that cannot be started,
exit non-zero or exceed the hard timeout all become a failed
:class:`WorkerResult`, so one broken worker cannot abort the scheduler.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import os
import signal
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from loadpilot._internal.errors import ConfigError, SpawnError
from loadpilot._internal.logging import get_worker_logger
from loadpilot.engine.protocol import OUTPUT_TAIL_CHARS, WorkerResult
from loadpilot.scenarios.catalog import get_profile

if TYPE_CHECKING:
    from collections.abc import Mapping

    from loadpilot._internal.config import LoadPilotConfig, RunConfig
    from loadpilot._internal.types import WorkerEnv

_READ_CHUNK = 4096


class Launcher(Protocol):
    """Anything that can execute one worker to completion."""

    async def launch(self, worker_id: str, config: RunConfig) -> WorkerResult:
        """Run one worker and return its outcome. Must not raise."""
        ...


class _TailBuffer:
    """Keeps only the last ``limit`` characters written to it."""

    def __init__(self, limit: int = OUTPUT_TAIL_CHARS) -> None:
        self._limit = limit
        self._text = ""
        # Characters split across reads are held until their last byte arrives.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def _append(self, text: str) -> None:
        self._text = (self._text + text)[-self._limit:]

    def write(self, data: bytes) -> None:
        self._append(self._decoder.decode(data))

    def close(self) -> None:
        self._append(self._decoder.decode(b"", final=True))

    def getvalue(self) -> str:
        return self._text


async def _drain_stream(stream: asyncio.StreamReader | None, buffer: _TailBuffer) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            buffer.close()
            return
        buffer.write(chunk)


class SubprocessLauncher:
    """Runs each worker as an external process.

    The command is built from ``settings.worker_command``; each argument may
    reference ``{test_file}``, ``{worker_id}``, ``{worker_type}``,
    ``{environment}`` and ``{timeout_ms}``. Worker context is passed through
    environment variables:

    - ``LOAD_TEST_WORKER_ID``: unique worker id.
    - ``LOAD_TEST_TYPE``: worker type.
    - ``LOAD_TEST_APPLICATION``: application the scenario targets.
    - ``APP_ENV``: target environment.
    - ``LOAD_TEST_RESULTS_DIR``: shared results directory.

    Attributes:
        settings: Process-wide LoadPilot configuration.
        results_dir: Directory workers write their result files into.
    """

    def __init__(
        self,
        settings: LoadPilotConfig,
        *,
        results_dir: Path | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the launcher.

        Args:
            settings: Process-wide configuration (command, paths, timeouts).
            results_dir: Override for ``settings.results_dir``.
            base_env: Environment inherited by workers. Defaults to
                ``os.environ``.

        Raises:
            ConfigError: If the command template references an unknown
                placeholder.
        """
        self.settings = settings
        self.results_dir = Path(results_dir or settings.results_dir).resolve()
        self._base_env = dict(os.environ if base_env is None else base_env)
        self._project_dir = Path(settings.project_dir).resolve()
        self._validate_template()

    def _validate_template(self) -> None:
        fields = {
            "test_file": "",
            "worker_id": "",
            "worker_type": "",
            "environment": "",
            "timeout_ms": 0,
        }
        for arg in self.settings.worker_command:
            try:
                arg.format(**fields)
            except (KeyError, IndexError, ValueError) as exc:
                msg = f"Invalid placeholder in worker command argument {arg!r}: {exc}"
                raise ConfigError(msg) from None

    def test_file_path(self, config: RunConfig) -> Path:
        """Return the absolute path of the spec file for ``config``."""
        tests_dir = Path(self.settings.tests_dir)
        if not tests_dir.is_absolute():
            tests_dir = self._project_dir / tests_dir
        return tests_dir / get_profile(config.worker_type).test_file

    def build_command(self, worker_id: str, config: RunConfig) -> list[str]:
        """Expand the worker command template for one worker.

        Args:
            worker_id: Unique worker id.
            config: Run configuration.

        Returns:
            The argv list of the worker process.
        """
        fields = {
            "test_file": str(self.test_file_path(config)),
            "worker_id": worker_id,
            "worker_type": config.worker_type.value,
            "environment": config.environment,
            "timeout_ms": int(self.settings.test_timeout * 1000),
        }
        return [arg.format(**fields) for arg in self.settings.worker_command]

    def build_env(self, worker_id: str, config: RunConfig) -> WorkerEnv:
        """Build the environment of one worker process.

        Args:
            worker_id: Unique worker id.
            config: Run configuration.

        Returns:
            Inherited environment plus the worker context variables.
        """
        env = dict(self._base_env)
        env.update(
            {
                "LOAD_TEST_WORKER_ID": worker_id,
                "LOAD_TEST_TYPE": config.worker_type.value,
                "LOAD_TEST_APPLICATION": get_profile(config.worker_type).application_name,
                "APP_ENV": config.environment,
                "LOAD_TEST_RESULTS_DIR": str(self.results_dir),
            }
        )
        return env

    async def _start(
        self, command: list[str], env: WorkerEnv
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self._project_dir),
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except OSError as exc:
            msg = f"Failed to start {command[0]!r}: {exc}"
            raise SpawnError(msg) from exc

    async def launch(self, worker_id: str, config: RunConfig) -> WorkerResult:
        """Run one worker process to completion.

        Args:
            worker_id: Unique worker id.
            config: Run configuration.

        Returns:
            The normalized process outcome. Never raises except for
            cancellation, in which case the process is killed first.
        """
        log = get_worker_logger("engine.launcher", worker_id)
        command = self.build_command(worker_id, config)
        env = self.build_env(worker_id, config)
        start = time.monotonic()

        log.info("Spawning worker")
        log.debug("Command: %s", " ".join(command))

        try:
            proc = await self._start(command, env)
        except SpawnError as exc:
            log.error("Worker error: %s", exc)
            return WorkerResult.spawn_failure(
                worker_id, _elapsed_ms(start), str(exc)
            )

        stdout = _TailBuffer()
        stderr = _TailBuffer()
        timed_out = False

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _drain_stream(proc.stdout, stdout),
                    _drain_stream(proc.stderr, stderr),
                    proc.wait(),
                ),
                timeout=self.settings.worker_timeout,
            )
        except TimeoutError:
            timed_out = True
            log.warning(
                "Worker exceeded hard timeout of %.0fs, killing",
                self.settings.worker_timeout,
            )
            await _kill(proc)
        except asyncio.CancelledError:
            log.warning("Worker cancelled, killing process")
            await _kill(proc)
            raise

        duration_ms = _elapsed_ms(start)
        exit_code = proc.returncode if proc.returncode is not None else -1
        success = exit_code == 0 and not timed_out

        if success:
            log.info("Worker completed successfully (%.1fs)", duration_ms / 1000)
        else:
            log.info("Worker failed with code %d (%.1fs)", exit_code, duration_ms / 1000)

        return WorkerResult(
            worker_id=worker_id,
            success=success,
            duration_ms=duration_ms,
            exit_code=exit_code,
            stdout_tail=stdout.getvalue(),
            stderr_tail=stderr.getvalue(),
            timed_out=timed_out,
        )


async def _kill(proc: asyncio.subprocess.Process) -> None:
    # Each worker leads its own process group, browsers included.
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError, PermissionError):
            if sys.platform != "win32":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
    with contextlib.suppress(asyncio.CancelledError, TimeoutError):
        await asyncio.wait_for(asyncio.shield(proc.wait()), timeout=5.0)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
