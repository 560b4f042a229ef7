"""Shared fixtures for steptrail tests."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from steptrail.config.models import StepTrailConfig
from steptrail.model.outcome import TestOutcome
from steptrail.model.outcomes import TestOutcomes
from steptrail.model.status import Status
from steptrail.model.steps import StepError, StepResult

EARLY_DATE = datetime(2013, 1, 1, tzinfo=UTC)
LATE_DATE = datetime(2013, 1, 2, tzinfo=UTC)


SAMPLE_CONFIG: Dict[str, Any] = {
    "project": {"name": "widget-shop", "version": "1.2.0"},
    "driver": {"test_timeout": 5.0, "skip_after_failure": True},
    "tests": {
        "purchase_new_widget": {
            "title": "Purchase a new widget",
            "requirements": ["WIDGETS", "CHECKOUT"],
        },
        "browse_catalog": {"requirements": ["CATALOG"]},
    },
    "history_db_path": "steptrail_history.db",
    "history_max_records": 0,
    "event_log_size": 50,
}


@pytest.fixture()
def sample_config() -> StepTrailConfig:
    """Return a parsed StepTrailConfig from sample data."""
    return StepTrailConfig(**SAMPLE_CONFIG)


@pytest.fixture()
def sample_config_dict() -> Dict[str, Any]:
    return dict(SAMPLE_CONFIG)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write sample config to a temp .steptrail.yaml and return the path."""
    path = tmp_path / ".steptrail.yaml"
    with path.open("w") as fh:
        yaml.dump(SAMPLE_CONFIG, fh)
    return path


class OutcomesBuilder:
    """Builds outcomes whose every step has the same status."""

    def _outcome(self, status: Status, step_count: int, start: datetime | None) -> TestOutcome:
        outcome = TestOutcome("a_test", requirement_tags=["WIDGETS"])
        error = StepError("expected 1 but was 2", "AssertionError") if status is Status.FAILURE else None
        for i in range(1, step_count + 1):
            outcome.record_step(StepResult.leaf(f"Step {i}", status, error=error, duration_ms=10.0))
        if start is not None:
            outcome.set_start_time(start)
        return outcome

    def that_succeeds_for(self, step_count: int) -> TestOutcome:
        return self._outcome(Status.SUCCESS, step_count, EARLY_DATE)

    def that_is_pending_for(self, step_count: int) -> TestOutcome:
        return self._outcome(Status.PENDING, step_count, LATE_DATE)

    def that_is_ignored_for(self, step_count: int) -> TestOutcome:
        return self._outcome(Status.IGNORED, step_count, None)

    def that_is_failing_for(self, step_count: int) -> TestOutcome:
        return self._outcome(Status.FAILURE, step_count, LATE_DATE)

    def default_results(self) -> TestOutcomes:
        return TestOutcomes.of([
            self.that_succeeds_for(10),
            self.that_succeeds_for(20),
            self.that_is_failing_for(30),
            self.that_is_pending_for(2),
            self.that_is_pending_for(2),
            self.that_is_pending_for(2),
            self.that_is_failing_for(10),
            self.that_is_failing_for(20),
            self.that_is_failing_for(30),
            self.that_is_ignored_for(10),
            self.that_is_pending_for(2),
            self.that_is_pending_for(2),
        ])


@pytest.fixture()
def outcomes_builder() -> OutcomesBuilder:
    return OutcomesBuilder()
