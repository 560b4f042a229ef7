"""Step-result tree, status rollup and outcome aggregation."""

from steptrail.model.naming import humanize
from steptrail.model.outcome import TestOutcome
from steptrail.model.outcomes import TestOutcomes
from steptrail.model.rollup import leaf_counts, merge_step, rollup, total_duration, worst_of
from steptrail.model.status import Status
from steptrail.model.steps import StepError, StepResult
from steptrail.model.tree import StepTreeBuilder

__all__ = [
    "Status",
    "StepError",
    "StepResult",
    "StepTreeBuilder",
    "TestOutcome",
    "TestOutcomes",
    "humanize",
    "leaf_counts",
    "merge_step",
    "rollup",
    "total_duration",
    "worst_of",
]
