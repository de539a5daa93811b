"""Tests for the summary artifact store."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from loadpilot._internal.errors import ResultFileError
from loadpilot.metrics.models import (
    ResultCounts,
    RunSummary,
    TimingStats,
    WorkerEntry,
    WorkerResultRecord,
)
from loadpilot.metrics.store import (
    SUMMARY_FILE_NAME,
    read_summary,
    summary_from_dict,
    write_summary,
)

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def summary() -> RunSummary:
    return RunSummary(
        test_type="identity",
        environment="rc",
        config={"type": "identity", "duration": 10, "interval": 15},
        start_time="2026-01-01T00:00:00.000+00:00",
        end_time="2026-01-01T00:12:00.000+00:00",
        total_ms=720_000,
        results=ResultCounts(total=2, passed=1, failed=1, success_rate="50.0"),
        timing=TimingStats(avg_duration=300_000, min_duration=200_000, max_duration=400_000),
        threshold=85.0,
        passed_threshold=False,
        workers=[
            WorkerEntry(worker_id="w-1", success=True, exit_code=0, duration_ms=200_000),
            WorkerEntry(
                worker_id="w-2",
                success=False,
                exit_code=1,
                duration_ms=400_000,
                reported_status="failed",
                errors=["upload timed out"],
                stderr_tail="Error: upload timed out",
            ),
        ],
        records=[WorkerResultRecord(worker_id="w-2", status="failed", session_id="s-2")],
        incomplete=["w-3"],
    )


class TestWriteSummary:
    """Tests for write_summary."""

    def test_writes_indented_json(self, tmp_path: Path, summary: RunSummary) -> None:
        path = write_summary(summary, tmp_path / "results")

        assert path == tmp_path / "results" / SUMMARY_FILE_NAME
        text = path.read_text()
        assert text.startswith("{\n  ")
        data = json.loads(text)
        assert data["testType"] == "identity"
        assert data["results"]["successRate"] == "50.0"
        assert data["passed"] is False
        assert data["incomplete"] == ["w-3"]


class TestReadSummary:
    """Tests for read_summary and summary_from_dict."""

    def test_reads_back_written_summary(self, tmp_path: Path, summary: RunSummary) -> None:
        write_summary(summary, tmp_path)
        loaded = read_summary(tmp_path / SUMMARY_FILE_NAME)
        assert loaded == summary
        assert loaded.exit_code == 1

    def test_accepts_results_directory(self, tmp_path: Path, summary: RunSummary) -> None:
        write_summary(summary, tmp_path)
        assert read_summary(tmp_path).test_type == "identity"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ResultFileError, match="not found"):
            read_summary(tmp_path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / SUMMARY_FILE_NAME
        path.write_text("[1, 2")
        with pytest.raises(ResultFileError, match=SUMMARY_FILE_NAME):
            read_summary(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / SUMMARY_FILE_NAME
        path.write_text("[]")
        with pytest.raises(ResultFileError, match="JSON object"):
            read_summary(path)

    def test_missing_keys(self) -> None:
        with pytest.raises(ResultFileError, match="Malformed summary"):
            summary_from_dict({"testType": "session"})

    def test_verdict_derived_when_absent(self, summary: RunSummary) -> None:
        data = summary.to_dict()
        del data["passed"]
        data["results"]["successRate"] = "90.0"  # type: ignore[index]
        assert summary_from_dict(data).passed_threshold is True
