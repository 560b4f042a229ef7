"""Status rollup: pure functions over sequences of steps."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, MutableSequence, Sequence
from typing import TYPE_CHECKING

from steptrail.model.status import Status

if TYPE_CHECKING:
    from steptrail.model.steps import StepResult


def worst_of(statuses: Iterable[Status]) -> Status:
    """Return the worst status in *statuses*, or SUCCESS when there are none."""
    return max(statuses, default=Status.SUCCESS)


def rollup(children: Sequence[StepResult]) -> Status:
    """Roll a sequence of sibling steps up into a single status.

    Group children contribute their own (already rolled-up) status, so the
    result is computed bottom-up. The outcome depends only on the multiset of
    child statuses, never on their order.
    """
    return worst_of(child.status for child in children)


def leaf_counts(steps: Iterable[StepResult]) -> Counter[Status]:
    """Count leaf steps by status. Groups themselves are never counted."""
    counts: Counter[Status] = Counter()
    for step in steps:
        for leaf in step.iter_leaves():
            counts[leaf.status] += 1
    return counts


def total_duration(steps: Iterable[StepResult]) -> float:
    """Sum step durations (ms) in recorded order."""
    total = 0.0
    for step in steps:
        total += step.duration_ms
    return total


def merge_step(context: StepResult | MutableSequence[StepResult], step: StepResult) -> Status:
    """Append *step* to the open group or root list *context*.

    Returns the context's rolled-up status after the merge.
    """
    if isinstance(context, MutableSequence):
        context.append(step)
        return rollup(context)
    context.append(step)
    return context.status
