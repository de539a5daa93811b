"""Aggregation of worker outcomes into a ``RunSummary``.

Pass/fail counts and timing come exclusively from the launcher-observed
``WorkerResult`` of each completed handle. Worker result files only enrich
the per-worker entries; a worker that reports "passed" but exited non-zero
still counts as failed.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import numpy as np

from loadpilot._internal.logging import get_logger
from loadpilot.metrics.models import (
    ResultCounts,
    RunSummary,
    TimingStats,
    WorkerEntry,
)
from loadpilot.scenarios.catalog import success_threshold

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from loadpilot._internal.config import RunConfig
    from loadpilot.engine.protocol import WorkerHandle
    from loadpilot.metrics.models import WorkerResultRecord

logger = get_logger("metrics.aggregator")

_PERCENTILES = (50.0, 90.0, 95.0)


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def compute_timing(durations_ms: Sequence[int]) -> TimingStats:
    """Compute duration statistics of completed workers.

    Args:
        durations_ms: Worker durations in milliseconds.

    Returns:
        TimingStats with all fields rounded to whole milliseconds. All
        zero if ``durations_ms`` is empty.
    """
    if not durations_ms:
        return TimingStats()

    arr = np.array(durations_ms, dtype=np.float64)
    p50, p90, p95 = np.percentile(arr, _PERCENTILES)

    return TimingStats(
        avg_duration=_round_half_up(float(np.mean(arr))),
        min_duration=int(np.min(arr)),
        max_duration=int(np.max(arr)),
        p50_duration=_round_half_up(float(p50)),
        p90_duration=_round_half_up(float(p90)),
        p95_duration=_round_half_up(float(p95)),
    )


def compute_counts(passed: int, total: int) -> ResultCounts:
    """Build pass/fail counts and the formatted success rate.

    Args:
        passed: Number of successful workers.
        total: Number of completed workers.

    Returns:
        ResultCounts; the success rate is ``"0.0"`` when ``total`` is 0.
    """
    rate = passed / total * 100 if total > 0 else 0.0
    return ResultCounts(
        total=total,
        passed=passed,
        failed=total - passed,
        success_rate=f"{rate:.1f}",
    )


def _iso(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(epoch_seconds, tz=UTC).isoformat(timespec="milliseconds")


def summarize(
    handles: Iterable[WorkerHandle],
    records: Sequence[WorkerResultRecord],
    config: RunConfig,
    start_time: float,
    *,
    end_time: float | None = None,
    threshold: float | None = None,
    incomplete: Sequence[str] = (),
) -> RunSummary:
    """Build the summary of a run.

    Args:
        handles: Every worker handle of the run. Handles that have not
            completed are left out of the counts.
        records: Worker result files collected from the results directory.
        config: Run configuration.
        start_time: Epoch seconds at which the run started.
        end_time: Epoch seconds at which the run ended. Defaults to now.
        threshold: Minimum success rate in percent. Defaults to the
            worker type's policy.
        incomplete: Ids of workers abandoned by the drain timeout.

    Returns:
        The RunSummary of the run.
    """
    end = time.time() if end_time is None else end_time
    min_rate = success_threshold(config.worker_type) if threshold is None else threshold
    records_by_id = {r.worker_id: r for r in records}

    entries: list[WorkerEntry] = []
    for handle in handles:
        result = handle.result
        if result is None:
            continue
        record = records_by_id.get(handle.worker_id)
        entries.append(
            WorkerEntry(
                worker_id=handle.worker_id,
                success=result.success,
                exit_code=result.exit_code,
                duration_ms=result.duration_ms,
                timed_out=result.timed_out,
                error=result.error,
                reported_status=record.status if record else None,
                session_id=record.session_id if record else None,
                steps_completed=list(record.steps_completed) if record else [],
                errors=list(record.errors) if record else [],
                stderr_tail="" if result.success else result.stderr_tail,
            )
        )

    for entry in entries:
        if entry.reported_status == "passed" and not entry.success:
            logger.warning(
                "Worker %s reported passed but exited with code %d",
                entry.worker_id,
                entry.exit_code,
            )

    counts = compute_counts(sum(1 for e in entries if e.success), len(entries))
    timing = compute_timing([e.duration_ms for e in entries])
    passed_threshold = counts.success_rate_value >= min_rate

    return RunSummary(
        test_type=config.worker_type.value,
        environment=config.environment,
        config=config.to_dict(),
        start_time=_iso(start_time),
        end_time=_iso(end),
        total_ms=int((end - start_time) * 1000),
        results=counts,
        timing=timing,
        threshold=min_rate,
        passed_threshold=passed_threshold,
        workers=entries,
        records=list(records),
        incomplete=list(incomplete),
    )
