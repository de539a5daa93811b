"""Integration tests for the subprocess launcher.

Each test runs a real Python child process (the fake worker from
``conftest.py``) in place of a Playwright worker.
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from loadpilot._internal.errors import ConfigError
from loadpilot.engine.launcher import SubprocessLauncher
from loadpilot.engine.protocol import OUTPUT_TAIL_CHARS

if TYPE_CHECKING:
    from loadpilot._internal.config import RunConfig


class TestCommandTemplate:
    """Tests for command and environment building."""

    def test_placeholders_are_expanded(self, make_settings, session_config: RunConfig) -> None:
        settings = replace(
            make_settings(),
            worker_command=("runner", "{test_file}", "--id={worker_id}", "--timeout={timeout_ms}"),
            test_timeout=600.0,
        )
        launcher = SubprocessLauncher(settings)
        command = launcher.build_command("w-1", session_config)

        assert command[0] == "runner"
        assert command[1].endswith("session_load.spec.js")
        assert command[2] == "--id=w-1"
        assert command[3] == "--timeout=600000"

    def test_unknown_placeholder_raises(self, make_settings) -> None:
        settings = replace(make_settings(), worker_command=("runner", "{browser}"))
        with pytest.raises(ConfigError, match="browser"):
            SubprocessLauncher(settings)

    def test_worker_env(self, make_settings, session_config: RunConfig, tmp_path) -> None:
        launcher = SubprocessLauncher(make_settings(), base_env={"PATH": "/bin"})
        env = launcher.build_env("w-1", session_config)

        assert env["PATH"] == "/bin"
        assert env["LOAD_TEST_WORKER_ID"] == "w-1"
        assert env["LOAD_TEST_TYPE"] == "session"
        assert env["APP_ENV"] == "staging"
        assert env["LOAD_TEST_APPLICATION"] == "AutoTest Suite - ID Only"
        assert env["LOAD_TEST_RESULTS_DIR"] == str((tmp_path / "results").resolve())


class TestLaunch:
    """Tests for SubprocessLauncher.launch with real processes."""

    @pytest.mark.timeout(30)
    async def test_successful_worker(self, make_settings, session_config, tmp_path) -> None:
        launcher = SubprocessLauncher(make_settings("pass"))
        result = await launcher.launch("w-ok", session_config)

        assert result.success is True
        assert result.exit_code == 0
        assert result.timed_out is False
        assert result.duration_ms >= 50
        assert "worker=w-ok type=session env=staging" in result.stdout_tail

        data = json.loads((tmp_path / "results" / "load_result_w-ok.json").read_text())
        assert data["status"] == "passed"

    @pytest.mark.timeout(30)
    async def test_failing_worker(self, make_settings, session_config) -> None:
        launcher = SubprocessLauncher(make_settings("fail"))
        result = await launcher.launch("w-bad", session_config)

        assert result.success is False
        assert result.exit_code == 3
        assert "worker failed: boom" in result.stderr_tail

    @pytest.mark.timeout(30)
    async def test_missing_executable(self, make_settings, session_config, tmp_path) -> None:
        settings = replace(
            make_settings(), worker_command=(str(tmp_path / "no-such-runner"), "{test_file}")
        )
        result = await SubprocessLauncher(settings).launch("w-missing", session_config)

        assert result.success is False
        assert result.exit_code == -1
        assert result.error is not None
        assert "no-such-runner" in result.error

    @pytest.mark.timeout(30)
    async def test_hard_timeout_kills_worker(self, make_settings, session_config) -> None:
        launcher = SubprocessLauncher(make_settings("hang", worker_timeout=1.0))
        result = await launcher.launch("w-hang", session_config)

        assert result.timed_out is True
        assert result.success is False
        assert result.duration_ms < 10_000
        assert result.exit_code != 0

    @pytest.mark.timeout(30)
    async def test_output_tail_is_truncated(self, make_settings, session_config) -> None:
        launcher = SubprocessLauncher(make_settings("noisy"))
        result = await launcher.launch("w-noisy", session_config)

        assert result.success is True
        assert len(result.stdout_tail) == OUTPUT_TAIL_CHARS
        assert result.stdout_tail.rstrip().endswith("x" * 100)

    @pytest.mark.timeout(30)
    @pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")
    async def test_cancellation_kills_process(self, make_settings, session_config) -> None:
        launcher = SubprocessLauncher(make_settings("hang"))
        task = asyncio.create_task(launcher.launch("w-cancel", session_config))
        await asyncio.sleep(0.5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
