"""Collection of worker result files from the shared results directory.

Each worker writes exactly one ``load_result_<workerId>.json`` file. The
collector only reads them after all spawning has stopped, so no locking is
needed. Files that cannot be parsed are skipped with a warning.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from loadpilot._internal.errors import ResultFileError
from loadpilot._internal.logging import get_logger
from loadpilot.metrics.models import WorkerResultRecord

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger("metrics.collector")

RESULT_FILE_PREFIX = "load_result_"
RESULT_FILE_SUFFIX = ".json"
RESULT_FILE_GLOB = f"{RESULT_FILE_PREFIX}*{RESULT_FILE_SUFFIX}"


def result_file_name(worker_id: str) -> str:
    """Return the file name a worker with ``worker_id`` writes its result to."""
    return f"{RESULT_FILE_PREFIX}{worker_id}{RESULT_FILE_SUFFIX}"


def _optional_str(data: dict[str, object], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{key} must be a string, got {type(value).__name__}"
        raise ResultFileError(msg)
    return value


def _str_list(data: dict[str, object], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"{key} must be a list, got {type(value).__name__}"
        raise ResultFileError(msg)
    return [str(item) for item in value]


def parse_result_record(data: object) -> WorkerResultRecord:
    """Validate a decoded result document and build a record from it.

    Only ``workerId`` and ``status`` are mandatory; every other field
    defaults when absent.

    Args:
        data: Decoded JSON document.

    Returns:
        The parsed WorkerResultRecord.

    Raises:
        ResultFileError: If the document is not a well-formed result.
    """
    if not isinstance(data, dict):
        msg = f"result must be a JSON object, got {type(data).__name__}"
        raise ResultFileError(msg)

    worker_id = data.get("workerId")
    if not isinstance(worker_id, str) or not worker_id:
        msg = "workerId is missing or not a string"
        raise ResultFileError(msg)

    status = data.get("status")
    if status not in ("passed", "failed"):
        msg = f"status must be 'passed' or 'failed', got {status!r}"
        raise ResultFileError(msg)

    duration = data.get("duration")
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, int | float):
            msg = f"duration must be a number, got {type(duration).__name__}"
            raise ResultFileError(msg)
        duration = int(duration)

    return WorkerResultRecord(
        worker_id=worker_id,
        status=status,
        type=_optional_str(data, "type"),
        start_time=_optional_str(data, "startTime"),
        end_time=_optional_str(data, "endTime"),
        duration=duration,
        session_id=_optional_str(data, "sessionId"),
        applicant_email=_optional_str(data, "applicantEmail"),
        steps_completed=_str_list(data, "stepsCompleted"),
        errors=_str_list(data, "errors"),
    )


def read_result_file(path: Path) -> WorkerResultRecord:
    """Read and parse one worker result file.

    Args:
        path: Path of the result file.

    Returns:
        The parsed WorkerResultRecord.

    Raises:
        ResultFileError: If the file is not valid JSON or not a
            well-formed result.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"{path.name}: {exc}"
        raise ResultFileError(msg) from exc

    try:
        return parse_result_record(data)
    except ResultFileError as exc:
        msg = f"{path.name}: {exc}"
        raise ResultFileError(msg) from exc


def collect(results_dir: Path) -> list[WorkerResultRecord]:
    """Read every worker result file in ``results_dir``.

    Files are read in name order. Results carry no ordering guarantee and
    are correlated with workers by ``worker_id`` only.

    Args:
        results_dir: Shared results directory.

    Returns:
        Parsed records of every well-formed result file. Empty if the
        directory does not exist.
    """
    if not results_dir.is_dir():
        logger.warning("Results directory does not exist: %s", results_dir)
        return []

    records: list[WorkerResultRecord] = []
    for path in sorted(results_dir.glob(RESULT_FILE_GLOB)):
        try:
            records.append(read_result_file(path))
        except ResultFileError as exc:
            logger.warning("Failed to read result file %s", exc)

    logger.info("Collected %d worker result files from %s", len(records), results_dir)
    return records


def cleanup_result_files(results_dir: Path) -> int:
    """Create ``results_dir`` and delete result files left by a previous run.

    Args:
        results_dir: Shared results directory.

    Returns:
        Number of stale files removed.
    """
    results_dir.mkdir(parents=True, exist_ok=True)

    removed = 0
    for path in results_dir.glob(RESULT_FILE_GLOB):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        removed += 1

    if removed:
        logger.info("Removed %d stale result files from %s", removed, results_dir)
    return removed
