"""Step result nodes: leaf steps and step groups."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from steptrail.errors import InvalidArgumentError, InvalidStateError
from steptrail.model.rollup import rollup, total_duration
from steptrail.model.status import Status


@dataclass(frozen=True)
class StepError:
    """Captured failure attached to a FAILURE or ERROR step."""

    message: str
    kind: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> StepError:
        return cls(message=str(exc) or type(exc).__name__, kind=type(exc).__name__)

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "kind": self.kind}


class StepResult:
    """A node in the execution tree.

    Leaves carry a status fixed at construction. Groups own an ordered list of
    children and derive their status from them on every read: ``PENDING`` while
    open and empty, otherwise the rollup of their children.
    """

    def __init__(
        self,
        description: str,
        *,
        status: Status | None = None,
        error: StepError | None = None,
        started_at: datetime | None = None,
        duration_ms: float = 0.0,
        group: bool = False,
    ) -> None:
        if not isinstance(description, str) or not description.strip():
            raise InvalidArgumentError("A step needs a non-empty description")
        self._description = description.strip()
        self._is_group = group
        self._children: list[StepResult] = []
        if group:
            self._status: Status | None = None
            self._error: StepError | None = None
            self._duration_ms = 0.0
            self._started_at = started_at or datetime.now(UTC)
            self._closed = False
        else:
            if duration_ms < 0:
                raise InvalidArgumentError(f"Negative duration for step {self._description!r}: {duration_ms}")
            resolved = Status.parse(status) if status is not None else Status.PENDING
            self._status = resolved
            self._error = error if resolved.is_failing else None
            self._duration_ms = float(duration_ms)
            self._started_at = started_at
            self._closed = True

    @classmethod
    def leaf(
        cls,
        description: str,
        status: Status,
        error: StepError | None = None,
        started_at: datetime | None = None,
        duration_ms: float = 0.0,
    ) -> StepResult:
        """Build a closed leaf step."""
        return cls(description, status=status, error=error, started_at=started_at, duration_ms=duration_ms)

    @classmethod
    def group(cls, description: str, started_at: datetime | None = None) -> StepResult:
        """Build an open, empty step group."""
        return cls(description, started_at=started_at, group=True)

    @property
    def description(self) -> str:
        return self._description

    @property
    def is_group(self) -> bool:
        return self._is_group

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def children(self) -> tuple[StepResult, ...]:
        return tuple(self._children)

    @property
    def status(self) -> Status:
        if not self._is_group:
            assert self._status is not None
            return self._status
        if not self._children and not self._closed:
            return Status.PENDING
        return rollup(self._children)

    @property
    def error(self) -> StepError | None:
        return self._error

    @property
    def started_at(self) -> datetime | None:
        if self._is_group and self._children and self._children[0].started_at is not None:
            return self._children[0].started_at
        return self._started_at

    @property
    def duration_ms(self) -> float:
        if self._is_group:
            return total_duration(self._children)
        return self._duration_ms

    def append(self, child: StepResult) -> None:
        """Add a child to this open group."""
        if not isinstance(child, StepResult):
            raise InvalidArgumentError(f"Expected a StepResult, got {type(child).__name__}")
        if not self._is_group:
            raise InvalidStateError(f"Step {self._description!r} is a leaf and cannot hold child steps")
        if self._closed:
            raise InvalidStateError(f"Step group {self._description!r} is already closed")
        self._children.append(child)

    def close(self) -> Status:
        """Close this group, freezing its children. Returns the rolled-up status."""
        if self._closed:
            raise InvalidStateError(f"Step {self._description!r} is already closed")
        self._closed = True
        return self.status

    def iter_leaves(self) -> Iterator[StepResult]:
        if not self._is_group:
            yield self
            return
        for child in self._children:
            yield from child.iter_leaves()

    def flatten(self, depth: int = 0) -> Iterator[tuple[int, StepResult]]:
        """Yield ``(depth, node)`` pairs in execution order, this node first."""
        yield depth, self
        for child in self._children:
            yield from child.flatten(depth + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "status": self.status.value,
            "is_group": self.is_group,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error.to_dict() if self.error else None,
            "children": [c.to_dict() for c in self._children],
        }

    def __repr__(self) -> str:
        kind = "group" if self._is_group else "leaf"
        return f"StepResult({kind}, {self._description!r}, {self.status.value})"
