"""Outcome of a single test execution."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from steptrail.errors import InvalidArgumentError, InvalidStateError
from steptrail.model.naming import humanize
from steptrail.model.rollup import leaf_counts, rollup, total_duration
from steptrail.model.status import Status
from steptrail.model.steps import StepError, StepResult
from steptrail.model.tree import StepTreeBuilder

if TYPE_CHECKING:
    from steptrail.metadata import RequirementSource

logger = logging.getLogger(__name__)


class TestOutcome:
    """The step tree of one test run plus its identity metadata.

    Status, duration and step counts are derived from the recorded steps on
    every read. Once :meth:`finish` is called the outcome accepts no further
    changes.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(
        self,
        method_identifier: str,
        title: str | None = None,
        requirement_tags: Iterable[str] = (),
    ) -> None:
        if not isinstance(method_identifier, str) or not method_identifier.strip():
            raise InvalidArgumentError("A test outcome needs a non-empty method identifier")
        self._method_identifier = method_identifier.strip()
        self._title = title.strip() if title and title.strip() else humanize(self._method_identifier)
        self._requirement_tags = frozenset(str(tag) for tag in requirement_tags)
        self._tree = StepTreeBuilder()
        self._start_time: datetime | None = None

    @classmethod
    def for_test(cls, identifier: str, requirement_source: RequirementSource | None = None) -> TestOutcome:
        """Create an empty outcome, resolving title and tags from *requirement_source*."""
        title: str | None = None
        tags: Iterable[str] = ()
        if requirement_source is not None:
            title = requirement_source.title_for(identifier)
            tags = requirement_source.requirements_for(identifier)
        return cls(identifier, title=title, requirement_tags=tags)

    # ─── identity ───

    @property
    def method_identifier(self) -> str:
        return self._method_identifier

    @property
    def title(self) -> str:
        return self._title

    @property
    def requirement_tags(self) -> frozenset[str]:
        return self._requirement_tags

    @property
    def start_time(self) -> datetime | None:
        return self._start_time

    @property
    def is_finished(self) -> bool:
        return self._tree.is_sealed

    @property
    def root_steps(self) -> tuple[StepResult, ...]:
        return self._tree.roots

    # ─── recording ───

    def record_step(self, step: StepResult) -> None:
        self._tree.record(step)

    def record_leaf(
        self,
        description: str,
        status: Status,
        error: StepError | None = None,
        started_at: datetime | None = None,
        duration_ms: float = 0.0,
    ) -> StepResult:
        return self._tree.record_leaf(
            description, status, error=error, started_at=started_at, duration_ms=duration_ms
        )

    def open_group(self, description: str, started_at: datetime | None = None) -> StepResult:
        return self._tree.open_group(description, started_at=started_at)

    def close_group(self) -> Status:
        return self._tree.close_group()

    @property
    def open_group_count(self) -> int:
        return self._tree.depth

    def set_start_time(self, timestamp: datetime) -> None:
        if self.is_finished:
            raise InvalidStateError(f"Cannot set start time: test {self._method_identifier!r} has finished")
        if self._start_time is not None:
            logger.warning(
                "Start time of %r reset from %s to %s",
                self._method_identifier,
                self._start_time.isoformat(),
                timestamp.isoformat(),
            )
        self._start_time = timestamp

    def finish(self) -> None:
        """Freeze the outcome. Fails if step groups are still open."""
        self._tree.seal()

    # ─── derived reads ───

    @property
    def overall_status(self) -> Status:
        return rollup(self._tree.roots)

    @property
    def duration_ms(self) -> float:
        return total_duration(self._tree.roots)

    def count_by_status(self) -> Counter[Status]:
        return leaf_counts(self._tree.roots)

    def count_of(self, status: Status) -> int:
        return self.count_by_status()[Status.parse(status)]

    @property
    def step_count(self) -> int:
        return sum(self.count_by_status().values())

    def leaves(self) -> list[StepResult]:
        return [leaf for root in self._tree.roots for leaf in root.iter_leaves()]

    def to_dict(self) -> dict[str, Any]:
        counts = self.count_by_status()
        return {
            "method_identifier": self.method_identifier,
            "title": self.title,
            "requirement_tags": sorted(self.requirement_tags),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "status": self.overall_status.value,
            "duration_ms": self.duration_ms,
            "step_count": sum(counts.values()),
            "step_counts": {s.value: counts[s] for s in Status if counts[s]},
            "steps": [s.to_dict() for s in self.root_steps],
        }

    def __repr__(self) -> str:
        return f"TestOutcome({self._method_identifier!r}, {self.overall_status.value})"
