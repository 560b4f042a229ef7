"""Select stored outcomes into a filtered TestOutcomes view."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from steptrail.model.outcomes import TestOutcomes, as_utc
from steptrail.model.status import Status
from steptrail.runs.history import OutcomeRecord


def select_outcomes(
    records: Iterable[OutcomeRecord],
    status: Status | str | None = None,
    requirement: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> TestOutcomes:
    """Rebuild outcomes from history records and apply the given filters.

    Naive datetimes are taken as UTC. Raises InvalidArgumentError for an
    unknown status or an inverted date range.
    """
    outcomes = TestOutcomes.of(record.to_outcome() for record in records)
    if status is not None:
        outcomes = outcomes.filter_by_status(status)
    if requirement:
        outcomes = outcomes.filter_by_requirement(requirement)
    if since is not None or until is not None:
        start = as_utc(since) if since is not None else datetime.min.replace(tzinfo=UTC)
        end = as_utc(until) if until is not None else datetime.max.replace(tzinfo=UTC)
        outcomes = outcomes.filter_by_date_range(start, end)
    return outcomes
