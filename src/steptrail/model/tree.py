"""Incremental builder for a test's step tree."""

from __future__ import annotations

import logging
from datetime import datetime

from steptrail.errors import InvalidArgumentError, InvalidStateError
from steptrail.model.rollup import merge_step
from steptrail.model.status import Status
from steptrail.model.steps import StepError, StepResult

logger = logging.getLogger(__name__)


class StepTreeBuilder:
    """Builds a step tree from open/record/close calls made in execution order.

    Holds the root sequence plus a stack of currently open groups. Nodes only
    reference their children; the stack is how the builder knows where the
    next step goes.
    """

    def __init__(self) -> None:
        self._roots: list[StepResult] = []
        self._open: list[StepResult] = []
        self._sealed = False

    @property
    def roots(self) -> tuple[StepResult, ...]:
        return tuple(self._roots)

    @property
    def depth(self) -> int:
        """Number of groups currently open."""
        return len(self._open)

    @property
    def current_group(self) -> StepResult | None:
        return self._open[-1] if self._open else None

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    def _check_open(self) -> None:
        if self._sealed:
            raise InvalidStateError("Cannot record steps: the test has already finished")

    def record(self, step: StepResult) -> Status:
        """Append a pre-built closed step to the current context."""
        self._check_open()
        if not isinstance(step, StepResult):
            raise InvalidArgumentError(f"Expected a StepResult, got {type(step).__name__}")
        if not step.is_closed:
            raise InvalidArgumentError(
                f"Step group {step.description!r} is still open; use open_group() to record into it"
            )
        context = self._open[-1] if self._open else self._roots
        return merge_step(context, step)

    def record_leaf(
        self,
        description: str,
        status: Status,
        error: StepError | None = None,
        started_at: datetime | None = None,
        duration_ms: float = 0.0,
    ) -> StepResult:
        self._check_open()
        step = StepResult.leaf(description, status, error=error, started_at=started_at, duration_ms=duration_ms)
        self.record(step)
        return step

    def open_group(self, description: str, started_at: datetime | None = None) -> StepResult:
        self._check_open()
        group = StepResult.group(description, started_at=started_at)
        context = self._open[-1] if self._open else self._roots
        merge_step(context, group)
        self._open.append(group)
        return group

    def close_group(self) -> Status:
        """Close the innermost open group and return its rolled-up status."""
        self._check_open()
        if not self._open:
            raise InvalidStateError("close_group() called with no open step group")
        group = self._open.pop()
        status = group.close()
        logger.debug("Closed step group %r with status %s", group.description, status)
        return status

    def seal(self) -> None:
        """Mark the tree finished; no further recording is accepted."""
        if self._sealed:
            return
        if self._open:
            names = ", ".join(repr(g.description) for g in self._open)
            raise InvalidStateError(f"Cannot finish with step groups still open: {names}")
        self._sealed = True
