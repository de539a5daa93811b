"""Persistence of the run summary artifact."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from loadpilot._internal.errors import ResultFileError
from loadpilot._internal.logging import get_logger
from loadpilot.metrics.collector import parse_result_record
from loadpilot.metrics.models import (
    ResultCounts,
    RunSummary,
    TimingStats,
    WorkerEntry,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger("metrics.store")

SUMMARY_FILE_NAME = "load-test-summary.json"


def write_summary(summary: RunSummary, results_dir: Path) -> Path:
    """Write ``summary`` as indented JSON into ``results_dir``.

    Args:
        summary: Summary to persist.
        results_dir: Directory receiving ``load-test-summary.json``.

    Returns:
        Path of the written file.
    """
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / SUMMARY_FILE_NAME
    path.write_text(json.dumps(summary.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info("Summary written to %s", path)
    return path


def _entry_from_dict(data: dict[str, Any]) -> WorkerEntry:
    return WorkerEntry(
        worker_id=str(data["workerId"]),
        success=bool(data["success"]),
        exit_code=int(data["exitCode"]),
        duration_ms=int(data["durationMs"]),
        timed_out=bool(data.get("timedOut", False)),
        error=data.get("error"),
        reported_status=data.get("reportedStatus"),
        session_id=data.get("sessionId"),
        steps_completed=list(data.get("stepsCompleted") or []),
        errors=list(data.get("errors") or []),
        stderr_tail=data.get("stderrTail") or "",
    )


def summary_from_dict(data: dict[str, Any]) -> RunSummary:
    """Rebuild a RunSummary from its JSON document.

    Args:
        data: Decoded summary document.

    Returns:
        The RunSummary.

    Raises:
        ResultFileError: If a required key is missing or has the wrong type.
    """
    try:
        execution = data["executionTime"]
        results = data["results"]
        timing = data.get("timing", {})
        rate = str(results["successRate"])
        threshold = float(data["threshold"])
        return RunSummary(
            test_type=str(data["testType"]),
            environment=str(data["environment"]),
            config=dict(data.get("config", {})),
            start_time=str(execution["start"]),
            end_time=str(execution["end"]),
            total_ms=int(execution["totalMs"]),
            results=ResultCounts(
                total=int(results["total"]),
                passed=int(results["passed"]),
                failed=int(results["failed"]),
                success_rate=rate,
            ),
            timing=TimingStats(
                avg_duration=int(timing.get("avgDuration", 0)),
                min_duration=int(timing.get("minDuration", 0)),
                max_duration=int(timing.get("maxDuration", 0)),
                p50_duration=int(timing.get("p50Duration", 0)),
                p90_duration=int(timing.get("p90Duration", 0)),
                p95_duration=int(timing.get("p95Duration", 0)),
            ),
            threshold=threshold,
            passed_threshold=bool(data.get("passed", float(rate) >= threshold)),
            workers=[_entry_from_dict(w) for w in data.get("workers", [])],
            records=[parse_result_record(r) for r in data.get("records", [])],
            incomplete=[str(i) for i in data.get("incomplete", [])],
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        msg = f"Malformed summary: {type(exc).__name__}: {exc}"
        raise ResultFileError(msg) from exc


def read_summary(path: Path) -> RunSummary:
    """Load a summary written by :func:`write_summary`.

    Args:
        path: Summary file, or a results directory containing one.

    Returns:
        The RunSummary.

    Raises:
        ResultFileError: If the file is missing, not JSON or malformed.
    """
    if path.is_dir():
        path = path / SUMMARY_FILE_NAME
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        msg = f"Summary file not found: {path}"
        raise ResultFileError(msg) from exc
    except json.JSONDecodeError as exc:
        msg = f"{path.name}: {exc}"
        raise ResultFileError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name}: summary must be a JSON object"
        raise ResultFileError(msg)
    return summary_from_dict(data)
