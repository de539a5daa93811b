"""Tests for the scenario catalog."""

from __future__ import annotations

import pytest

from loadpilot.scenarios import SCENARIOS, WorkerType, get_profile, success_threshold


class TestWorkerType:
    """Tests for the WorkerType enum."""

    def test_choices(self) -> None:
        assert WorkerType.choices() == ["session", "identity", "financial"]

    def test_from_value(self) -> None:
        assert WorkerType("financial") is WorkerType.FINANCIAL

    def test_unknown_value_raises(self) -> None:
        with pytest.raises(ValueError, match="payroll"):
            WorkerType("payroll")


class TestCatalog:
    """Tests for scenario profiles and thresholds."""

    def test_every_type_has_a_profile(self) -> None:
        assert set(SCENARIOS) == set(WorkerType)
        for worker_type, profile in SCENARIOS.items():
            assert profile.worker_type is worker_type
            assert profile.test_file.endswith(".spec.js")

    @pytest.mark.parametrize(
        ("worker_type", "threshold"),
        [
            (WorkerType.SESSION, 90.0),
            (WorkerType.IDENTITY, 85.0),
            (WorkerType.FINANCIAL, 80.0),
        ],
    )
    def test_thresholds(self, worker_type: WorkerType, threshold: float) -> None:
        assert success_threshold(worker_type) == threshold

    def test_financial_uses_its_own_application(self) -> None:
        assert get_profile(WorkerType.FINANCIAL).application_name != (
            get_profile(WorkerType.SESSION).application_name
        )
