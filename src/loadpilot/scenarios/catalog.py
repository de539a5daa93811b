"""Catalog of load test scenarios and their pass/fail policy.

Each worker type maps to one Playwright spec file under the load-testing
tests directory. The minimum success rate reflects how reliable the
scenario is expected to be: scenarios that depend on document OCR get a
lower bar than plain session creation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class WorkerType(str, Enum):
    """Kind of end-to-end scenario a worker executes."""

    SESSION = "session"
    IDENTITY = "identity"
    FINANCIAL = "financial"

    @classmethod
    def choices(cls) -> list[str]:
        """Return the accepted ``--type`` values in declaration order."""
        return [member.value for member in cls]


@dataclass(frozen=True)
class ScenarioProfile:
    """Static description of a worker scenario.

    Attributes:
        worker_type: The worker type this profile belongs to.
        test_file: Playwright spec file name, relative to the tests directory.
        application_name: Application the worker creates sessions for.
        description: Human-readable summary of the flow.
        expected_duration_ms: Typical wall-clock time of one worker run.
        min_success_rate: Success rate (percent) required for a passing run.
    """

    worker_type: WorkerType
    test_file: str
    application_name: str
    description: str
    expected_duration_ms: int
    min_success_rate: float


SCENARIOS: dict[WorkerType, ScenarioProfile] = {
    WorkerType.SESSION: ScenarioProfile(
        worker_type=WorkerType.SESSION,
        test_file="session_load.spec.js",
        application_name="AutoTest Suite - ID Only",
        description="Session creation + START step (Full UI)",
        expected_duration_ms=180_000,
        min_success_rate=90.0,
    ),
    WorkerType.IDENTITY: ScenarioProfile(
        worker_type=WorkerType.IDENTITY,
        test_file="identity_load.spec.js",
        application_name="AutoTest Suite - ID Only",
        description="Session + Identity file upload (Full UI)",
        expected_duration_ms=360_000,
        min_success_rate=85.0,
    ),
    WorkerType.FINANCIAL: ScenarioProfile(
        worker_type=WorkerType.FINANCIAL,
        test_file="financial_load.spec.js",
        application_name="Autotest - Fin Real File Only",
        description="Session + Financial file upload (Full UI)",
        expected_duration_ms=480_000,
        min_success_rate=80.0,
    ),
}


def get_profile(worker_type: WorkerType) -> ScenarioProfile:
    """Return the scenario profile for ``worker_type``."""
    return SCENARIOS[worker_type]


def success_threshold(worker_type: WorkerType) -> float:
    """Return the minimum success rate (percent) for ``worker_type``."""
    return SCENARIOS[worker_type].min_success_rate
