"""Load test scenarios known to LoadPilot.

Each :class:`WorkerType` has a :class:`ScenarioProfile` naming the spec
file a worker runs and the success rate a run must reach to pass.
"""

from __future__ import annotations

from loadpilot.scenarios.catalog import (
    SCENARIOS,
    ScenarioProfile,
    WorkerType,
    get_profile,
    success_threshold,
)

__all__ = [
    "SCENARIOS",
    "ScenarioProfile",
    "WorkerType",
    "get_profile",
    "success_threshold",
]
