"""Execution history protocol and in-memory implementation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from steptrail.model.outcome import TestOutcome
from steptrail.model.status import Status
from steptrail.model.steps import StepError, StepResult


@dataclass
class StepRecord:
    """Stored form of one step; groups keep their children in order."""

    description: str
    status: Status
    is_group: bool = False
    started_at: datetime | None = None
    duration_ms: float = 0.0
    error_message: str | None = None
    error_kind: str | None = None
    children: list[StepRecord] = field(default_factory=list)

    @classmethod
    def from_step(cls, step: StepResult) -> StepRecord:
        return cls(
            description=step.description,
            status=step.status,
            is_group=step.is_group,
            started_at=step.started_at,
            duration_ms=step.duration_ms,
            error_message=step.error.message if step.error else None,
            error_kind=step.error.kind if step.error else None,
            children=[cls.from_step(c) for c in step.children],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "status": self.status.value,
            "is_group": self.is_group,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "duration_ms": self.duration_ms,
            "error": (
                {"message": self.error_message, "kind": self.error_kind or ""}
                if self.error_message is not None
                else None
            ),
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class OutcomeRecord:
    """Record of a single finished test execution."""

    method_identifier: str
    title: str
    requirement_tags: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    status: Status = Status.SUCCESS
    duration_ms: float = 0.0
    steps: list[StepRecord] = field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: TestOutcome, completed_at: datetime | None = None) -> OutcomeRecord:
        return cls(
            method_identifier=outcome.method_identifier,
            title=outcome.title,
            requirement_tags=sorted(outcome.requirement_tags),
            started_at=outcome.start_time or datetime.now(UTC),
            completed_at=completed_at,
            status=outcome.overall_status,
            duration_ms=outcome.duration_ms,
            steps=[StepRecord.from_step(s) for s in outcome.root_steps],
        )

    def to_outcome(self) -> TestOutcome:
        """Rebuild a finished TestOutcome by replaying the stored tree."""
        outcome = TestOutcome(self.method_identifier, title=self.title, requirement_tags=self.requirement_tags)
        outcome.set_start_time(self.started_at)
        for step in self.steps:
            _replay(outcome, step)
        outcome.finish()
        return outcome

    def to_dict(self) -> dict[str, Any]:
        return {
            "method_identifier": self.method_identifier,
            "title": self.title,
            "requirement_tags": list(self.requirement_tags),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "step_count": sum(1 for s in self.steps for _ in _leaves(s)),
            "steps": [s.to_dict() for s in self.steps],
        }


def _leaves(step: StepRecord) -> list[StepRecord]:
    if not step.is_group:
        return [step]
    return [leaf for child in step.children for leaf in _leaves(child)]


def _replay(outcome: TestOutcome, step: StepRecord) -> None:
    if step.is_group:
        outcome.open_group(step.description, started_at=step.started_at)
        for child in step.children:
            _replay(outcome, child)
        outcome.close_group()
        return
    error = StepError(step.error_message, step.error_kind or "") if step.error_message is not None else None
    outcome.record_leaf(
        step.description,
        step.status,
        error=error,
        started_at=step.started_at,
        duration_ms=step.duration_ms,
    )


@runtime_checkable
class ExecutionHistoryBackend(Protocol):
    """Protocol for execution history backends."""

    async def record(self, execution: OutcomeRecord) -> None: ...
    async def get_history(self, method_identifier: str) -> list[OutcomeRecord]: ...
    async def get_all(self) -> dict[str, list[OutcomeRecord]]: ...
    async def get_recent(self, limit: int = 10) -> list[OutcomeRecord]: ...


class InMemoryHistory:
    """In-memory execution log. Thread-safe via asyncio lock."""

    def __init__(self) -> None:
        self._records: dict[str, list[OutcomeRecord]] = {}
        self._lock = asyncio.Lock()

    async def record(self, execution: OutcomeRecord) -> None:
        async with self._lock:
            self._records.setdefault(execution.method_identifier, []).append(execution)

    async def get_history(self, method_identifier: str) -> list[OutcomeRecord]:
        """Execution history for one test, newest first."""
        async with self._lock:
            records = list(self._records.get(method_identifier, []))
            records.sort(key=lambda r: r.started_at, reverse=True)
            return records

    async def get_all(self) -> dict[str, list[OutcomeRecord]]:
        async with self._lock:
            return {k: list(v) for k, v in self._records.items()}

    async def get_recent(self, limit: int = 10) -> list[OutcomeRecord]:
        """Most recent records across all tests."""
        async with self._lock:
            all_records: list[OutcomeRecord] = []
            for records in self._records.values():
                all_records.extend(records)
            all_records.sort(key=lambda r: r.started_at, reverse=True)
            return all_records[:limit]
