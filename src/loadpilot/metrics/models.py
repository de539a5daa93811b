"""Result and summary dataclasses for LoadPilot.

Worker result files and the summary artifact use camelCase JSON keys, which
are shared with the Playwright workers and with downstream tooling. The
dataclasses use snake_case attributes and convert at the JSON boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from loadpilot._internal.types import JsonObject

__all__ = [
    "ResultCounts",
    "RunSummary",
    "TimingStats",
    "WorkerEntry",
    "WorkerResultRecord",
]

WorkerStatus = Literal["passed", "failed"]


@dataclass(frozen=True)
class WorkerResultRecord:
    """Self-reported outcome written by a worker process.

    Attributes:
        worker_id: Id of the worker that wrote the file.
        status: Worker's own verdict: "passed" or "failed".
        type: Worker type name.
        start_time: ISO timestamp at which the worker started.
        end_time: ISO timestamp at which the worker finished.
        duration: Worker-measured duration in milliseconds.
        session_id: Verification session created by the worker, if any.
        applicant_email: Applicant identity used by the worker, if any.
        steps_completed: Milestones reached, in order.
        errors: Error messages raised during the scenario.
    """

    worker_id: str
    status: WorkerStatus
    type: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration: int | None = None
    session_id: str | None = None
    applicant_email: str | None = None
    steps_completed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> JsonObject:
        """Return the camelCase JSON form of the record."""
        return {
            "workerId": self.worker_id,
            "type": self.type,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "status": self.status,
            "sessionId": self.session_id,
            "applicantEmail": self.applicant_email,
            "stepsCompleted": list(self.steps_completed),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class ResultCounts:
    """Aggregate pass/fail counts of a run.

    Attributes:
        total: Workers that completed before the end of draining.
        passed: Completed workers that exited with code 0.
        failed: Completed workers that did not.
        success_rate: ``passed / total`` as a percentage with one decimal,
            formatted as a string (e.g. ``"92.5"``).
    """

    total: int = 0
    passed: int = 0
    failed: int = 0
    success_rate: str = "0.0"

    @property
    def success_rate_value(self) -> float:
        """Return the success rate as a number."""
        return float(self.success_rate)


@dataclass(frozen=True)
class TimingStats:
    """Worker duration statistics in milliseconds."""

    avg_duration: int = 0
    min_duration: int = 0
    max_duration: int = 0
    p50_duration: int = 0
    p90_duration: int = 0
    p95_duration: int = 0


@dataclass(frozen=True)
class WorkerEntry:
    """One completed worker as reported in the summary.

    Combines the launcher-observed outcome with the worker's own record,
    matched by worker id.

    Attributes:
        worker_id: Worker identifier.
        success: Launcher verdict (exit code 0).
        exit_code: Process exit code.
        duration_ms: Launcher-measured duration.
        timed_out: True if the worker hit the hard timeout.
        error: Spawn error, if the process never started.
        reported_status: Status from the worker's result file, if any.
        session_id: Session id from the worker's result file, if any.
        steps_completed: Milestones from the worker's result file.
        errors: Errors from the worker's result file.
        stderr_tail: Tail of stderr, kept for failed workers only.
    """

    worker_id: str
    success: bool
    exit_code: int
    duration_ms: int
    timed_out: bool = False
    error: str | None = None
    reported_status: str | None = None
    session_id: str | None = None
    steps_completed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    stderr_tail: str = ""

    def to_dict(self) -> JsonObject:
        """Return the camelCase JSON form of the entry."""
        return {
            "workerId": self.worker_id,
            "success": self.success,
            "exitCode": self.exit_code,
            "durationMs": self.duration_ms,
            "timedOut": self.timed_out,
            "error": self.error,
            "reportedStatus": self.reported_status,
            "sessionId": self.session_id,
            "stepsCompleted": list(self.steps_completed),
            "errors": list(self.errors),
            "stderrTail": self.stderr_tail,
        }


@dataclass
class RunSummary:
    """Complete, write-once result of a load test run.

    Attributes:
        test_type: Worker type of the run.
        environment: Target environment tag.
        config: Snapshot of the run configuration.
        start_time: ISO timestamp of the scheduler start.
        end_time: ISO timestamp at which the summary was built.
        total_ms: Wall-clock duration of the run in milliseconds.
        results: Aggregate pass/fail counts.
        timing: Worker duration statistics.
        threshold: Minimum success rate (percent) for a passing run.
        passed_threshold: True iff the success rate met the threshold.
        workers: Per-worker entries, in spawn order.
        records: Every worker result file that was collected.
        incomplete: Ids of workers still running when draining gave up.
    """

    test_type: str
    environment: str
    config: JsonObject
    start_time: str
    end_time: str
    total_ms: int
    results: ResultCounts
    timing: TimingStats
    threshold: float
    passed_threshold: bool
    workers: list[WorkerEntry] = field(default_factory=list)
    records: list[WorkerResultRecord] = field(default_factory=list)
    incomplete: list[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """Process exit code for this run: 0 if the threshold was met."""
        return 0 if self.passed_threshold else 1

    def to_dict(self) -> JsonObject:
        """Return the JSON document written as the summary artifact."""
        return {
            "testType": self.test_type,
            "environment": self.environment,
            "config": dict(self.config),
            "executionTime": {
                "start": self.start_time,
                "end": self.end_time,
                "totalMs": self.total_ms,
            },
            "results": {
                "total": self.results.total,
                "passed": self.results.passed,
                "failed": self.results.failed,
                "successRate": self.results.success_rate,
            },
            "timing": {
                "avgDuration": self.timing.avg_duration,
                "minDuration": self.timing.min_duration,
                "maxDuration": self.timing.max_duration,
                "p50Duration": self.timing.p50_duration,
                "p90Duration": self.timing.p90_duration,
                "p95Duration": self.timing.p95_duration,
            },
            "threshold": self.threshold,
            "passed": self.passed_threshold,
            "incomplete": list(self.incomplete),
            "sessions": [
                {
                    "workerId": r.worker_id,
                    "sessionId": r.session_id,
                    "status": r.status,
                    "duration": r.duration,
                }
                for r in self.records
            ],
            "workers": [w.to_dict() for w in self.workers],
            "records": [r.to_dict() for r in self.records],
        }
