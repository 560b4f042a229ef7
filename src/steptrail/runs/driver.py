"""Scenario driver: runs async test bodies and records their steps."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from steptrail.config.models import StepTrailConfig
from steptrail.events.emitter import EventEmitter, OutcomeEvent
from steptrail.metadata import MappingRequirementSource, RequirementSource, is_ignored, is_pending, title_of
from steptrail.model.outcome import TestOutcome
from steptrail.model.outcomes import TestOutcomes
from steptrail.model.status import Status
from steptrail.model.steps import StepError, StepResult
from steptrail.runs.history import ExecutionHistoryBackend, OutcomeRecord

logger = logging.getLogger(__name__)

ScenarioBody = Callable[["Scenario"], Awaitable[None]]


def classify(exc: BaseException) -> Status:
    """Map an exception raised by a step to the status it records."""
    if isinstance(exc, AssertionError):
        return Status.FAILURE
    return Status.ERROR


class Scenario:
    """Handed to a scenario body; records each step into the outcome as it runs."""

    def __init__(self, outcome: TestOutcome, skip_after_failure: bool = True) -> None:
        self.outcome = outcome
        self._skip_after_failure = skip_after_failure
        self._failed = False

    @property
    def has_failed(self) -> bool:
        return self._failed

    def record(self, description: str, status: Status, error: StepError | None = None) -> StepResult:
        """Record a leaf with an explicit status, without running anything."""
        step = self.outcome.record_leaf(description, status, error=error, started_at=datetime.now(UTC))
        if step.status.is_failing:
            self._failed = True
        return step

    async def step(self, action: Callable[..., Any], *args: Any, description: str | None = None, **kwargs: Any) -> Any:
        """Run *action* as a step and record its result.

        ``@ignored`` and ``@pending`` actions are recorded without running, as
        is every action after a failure when skip-after-failure is on. Plain
        functions run in a worker thread so a blocking step cannot stall the
        event loop.
        """
        desc = description or title_of(action)
        if is_ignored(action):
            self.record(desc, Status.IGNORED)
            return None
        if is_pending(action):
            self.record(desc, Status.PENDING)
            return None
        if self._failed and self._skip_after_failure:
            self.record(desc, Status.SKIPPED)
            return None

        started_at = datetime.now(UTC)
        start = time.monotonic()
        result: Any = None
        error: StepError | None = None
        try:
            if inspect.iscoroutinefunction(action):
                result = await action(*args, **kwargs)
            else:
                result = await asyncio.to_thread(action, *args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as exc:
            status = classify(exc)
            error = StepError.from_exception(exc)
            result = None
            logger.info("Step %r recorded %s: %s", desc, status.value, error.message)
        else:
            status = Status.SUCCESS
        elapsed = (time.monotonic() - start) * 1000

        self.outcome.record_leaf(desc, status, error=error, started_at=started_at, duration_ms=elapsed)
        if status.is_failing:
            self._failed = True
        return result

    @asynccontextmanager
    async def group(self, description: str) -> AsyncIterator[StepResult]:
        """Record the steps run inside the block as a named step group.

        The group is always closed. An exception escaping the block is recorded
        as a leaf inside the group and does not propagate.
        """
        group = self.outcome.open_group(description)
        try:
            yield group
        except Exception as exc:
            self.record(f"Unexpected error in {description}", classify(exc), StepError.from_exception(exc))
        finally:
            self.outcome.close_group()


class ScenarioRunner:
    """Runs scenarios with a timeout, emitting events and recording history."""

    def __init__(
        self,
        config: StepTrailConfig | None = None,
        history: ExecutionHistoryBackend | None = None,
        emitter: EventEmitter | None = None,
        requirement_source: RequirementSource | None = None,
    ) -> None:
        self._config = config or StepTrailConfig()
        self._history = history
        self._emitter = emitter
        if requirement_source is None and self._config.tests:
            requirement_source = MappingRequirementSource(self._config.tests)
        self._requirement_source = requirement_source

    async def _emit(self, event: OutcomeEvent) -> None:
        if self._emitter is not None:
            await self._emitter.emit(event)

    def _terminate(self, outcome: TestOutcome, description: str, status: Status, error: StepError) -> None:
        """Record a terminal step into the innermost open context, then close every open group."""
        outcome.record_leaf(description, status, error=error, started_at=datetime.now(UTC))
        while outcome.open_group_count:
            outcome.close_group()

    async def _execute(self, identifier: str, body: ScenarioBody) -> TestOutcome:
        outcome = TestOutcome.for_test(identifier, self._requirement_source)
        started_at = datetime.now(UTC)
        outcome.set_start_time(started_at)
        await self._emit(OutcomeEvent(
            event_type="test.started",
            timestamp=started_at,
            identifier=identifier,
            data={"title": outcome.title, "requirement_tags": sorted(outcome.requirement_tags)},
        ))

        scenario = Scenario(outcome, skip_after_failure=self._config.driver.skip_after_failure)
        timeout = self._config.driver.test_timeout
        try:
            await asyncio.wait_for(body(scenario), timeout=timeout)
        except TimeoutError:
            logger.warning("Test %s timed out after %ss", identifier, timeout)
            self._terminate(
                outcome,
                f"Test timed out after {timeout}s",
                Status.ERROR,
                StepError(f"Test timed out after {timeout}s", "TimeoutError"),
            )
        except Exception as exc:
            logger.info("Test %s raised outside a step: %s", identifier, exc)
            self._terminate(outcome, "Unexpected error", classify(exc), StepError.from_exception(exc))
        outcome.finish()

        completed_at = datetime.now(UTC)
        counts = outcome.count_by_status()
        await self._emit(OutcomeEvent(
            event_type="test.completed",
            timestamp=completed_at,
            identifier=identifier,
            data={
                "status": outcome.overall_status.value,
                "duration_ms": outcome.duration_ms,
                "step_count": sum(counts.values()),
                "step_counts": {s.value: n for s, n in counts.items()},
            },
        ))

        if self._history is not None:
            await self._history.record(OutcomeRecord.from_outcome(outcome, completed_at=completed_at))
        return outcome

    async def _emit_failure(self, outcome: TestOutcome) -> None:
        failing = next((leaf for leaf in outcome.leaves() if leaf.status.is_failing), None)
        await self._emit(OutcomeEvent(
            event_type="failure.detected",
            timestamp=datetime.now(UTC),
            identifier=outcome.method_identifier,
            data={
                "status": outcome.overall_status.value,
                "step": failing.description if failing else None,
                "error": failing.error.message if failing and failing.error else "Unknown error",
            },
        ))

    async def run(self, identifier: str, body: ScenarioBody) -> TestOutcome:
        """Run one scenario and return its finished outcome."""
        outcome = await self._execute(identifier, body)
        if outcome.overall_status.is_failing:
            await self._emit_failure(outcome)
        return outcome

    async def run_suite(
        self,
        scenarios: Mapping[str, ScenarioBody] | Iterable[tuple[str, ScenarioBody]],
        parallel: bool = False,
    ) -> TestOutcomes:
        """Run many scenarios and join their outcomes into one collection.

        With ``parallel`` each scenario builds its own outcome concurrently;
        outcomes are only collected once every one of them has finished.
        """
        items = list(scenarios.items()) if isinstance(scenarios, Mapping) else list(scenarios)
        if parallel:
            outcomes = list(await asyncio.gather(*(self._execute(i, b) for i, b in items)))
        else:
            outcomes = [await self._execute(i, b) for i, b in items]

        first_failure = next((o for o in outcomes if o.overall_status.is_failing), None)
        if first_failure is not None:
            await self._emit_failure(first_failure)
        return TestOutcomes.of(outcomes)
