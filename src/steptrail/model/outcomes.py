"""Read-only collection of finished test outcomes with suite statistics."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from datetime import UTC, datetime
from typing import Any

from steptrail.errors import InvalidArgumentError, InvalidStateError
from steptrail.model.outcome import TestOutcome
from steptrail.model.status import Status


def as_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware values pass through unchanged."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class TestOutcomes:
    """An immutable view over finished :class:`TestOutcome` instances.

    Every filter returns a new ``TestOutcomes``; the receiver and the
    contained outcomes are never modified.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, outcomes: tuple[TestOutcome, ...]) -> None:
        self._outcomes = outcomes

    @classmethod
    def of(cls, outcomes: Iterable[TestOutcome | None]) -> TestOutcomes:
        """Build a collection, finishing each outcome as it is handed over.

        Every entry is checked before any is finished, so a rejected call
        leaves all of its outcomes as they were.
        """
        collected: list[TestOutcome] = []
        for index, outcome in enumerate(outcomes):
            if outcome is None:
                raise InvalidArgumentError(f"Test outcome at position {index} is missing")
            if not isinstance(outcome, TestOutcome):
                raise InvalidArgumentError(
                    f"Expected a TestOutcome at position {index}, got {type(outcome).__name__}"
                )
            if outcome.open_group_count:
                raise InvalidStateError(
                    f"Test outcome {outcome.method_identifier!r} at position {index} still has "
                    f"{outcome.open_group_count} open step group(s)"
                )
            collected.append(outcome)
        for outcome in collected:
            outcome.finish()
        return cls(tuple(collected))

    @property
    def outcomes(self) -> tuple[TestOutcome, ...]:
        return self._outcomes

    def __len__(self) -> int:
        return len(self._outcomes)

    def __iter__(self) -> Iterator[TestOutcome]:
        return iter(self._outcomes)

    def __repr__(self) -> str:
        return f"TestOutcomes({len(self._outcomes)} outcomes)"

    # ─── filters ───

    def _where(self, predicate: Callable[[TestOutcome], bool]) -> TestOutcomes:
        return TestOutcomes(tuple(o for o in self._outcomes if predicate(o)))

    def filter_by_status(self, status: Status | str) -> TestOutcomes:
        wanted = Status.parse(status)
        return self._where(lambda o: o.overall_status is wanted)

    def filter_by_requirement(self, tag: str) -> TestOutcomes:
        return self._where(lambda o: tag in o.requirement_tags)

    def filter_by_date_range(self, start: datetime, end: datetime) -> TestOutcomes:
        """Outcomes whose start time lies in ``[start, end]``.

        Naive bounds and start times are taken as UTC. Outcomes that never had
        a start time set are excluded.
        """
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise InvalidArgumentError(f"Date range start {start.isoformat()} is after end {end.isoformat()}")
        return self._where(lambda o: o.start_time is not None and start <= as_utc(o.start_time) <= end)

    # ─── aggregates ───

    @property
    def total_count(self) -> int:
        return len(self._outcomes)

    def count_by_status(self) -> dict[Status, int]:
        """Outcome counts per overall status, in rank order, present statuses only."""
        counts = Counter(o.overall_status for o in self._outcomes)
        return {status: counts[status] for status in Status if counts[status]}

    def count_of(self, status: Status | str) -> int:
        wanted = Status.parse(status)
        return sum(1 for o in self._outcomes if o.overall_status is wanted)

    def pass_rate(self) -> float:
        if not self._outcomes:
            return 0.0
        return self.count_of(Status.SUCCESS) / len(self._outcomes)

    @property
    def total_duration_ms(self) -> float:
        return sum((o.duration_ms for o in self._outcomes), 0.0)

    def step_counts(self) -> Counter[Status]:
        counts: Counter[Status] = Counter()
        for outcome in self._outcomes:
            counts.update(outcome.count_by_status())
        return counts

    @property
    def step_count(self) -> int:
        return sum(self.step_counts().values())

    def count_of_steps(self, status: Status | str) -> int:
        return self.step_counts()[Status.parse(status)]

    def step_pass_rate(self) -> float:
        counts = self.step_counts()
        total = sum(counts.values())
        if total == 0:
            return 0.0
        return counts[Status.SUCCESS] / total

    @property
    def requirements(self) -> frozenset[str]:
        tags: set[str] = set()
        for outcome in self._outcomes:
            tags.update(outcome.requirement_tags)
        return frozenset(tags)

    def summary(self) -> dict[str, Any]:
        step_counts = self.step_counts()
        return {
            "total": self.total_count,
            "pass_rate": self.pass_rate(),
            "by_status": {s.value: n for s, n in self.count_by_status().items()},
            "total_duration_ms": self.total_duration_ms,
            "step_count": sum(step_counts.values()),
            "steps_by_status": {s.value: step_counts[s] for s in Status if step_counts[s]},
            "step_pass_rate": self.step_pass_rate(),
            "requirements": sorted(self.requirements),
        }
