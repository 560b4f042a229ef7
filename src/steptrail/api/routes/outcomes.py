"""Read-only outcome history, suite summary, and events endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from steptrail.errors import InvalidArgumentError
from steptrail.model.outcomes import TestOutcomes
from steptrail.runs.query import select_outcomes

router = APIRouter(tags=["outcomes"])


async def _select(
    request: Request,
    status: str | None,
    requirement: str | None,
    since: datetime | None,
    until: datetime | None,
) -> TestOutcomes:
    history = request.app.state.history
    grouped = await history.get_all()
    records = [r for recs in grouped.values() for r in recs]
    try:
        return select_outcomes(records, status=status, requirement=requirement, since=since, until=until)
    except InvalidArgumentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/outcomes")
async def list_outcomes(
    request: Request,
    limit: int = 50,
    status: str | None = None,
    requirement: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[dict[str, Any]]:
    """Most recent outcomes matching the filters, newest first."""
    outcomes = await _select(request, status, requirement, since, until)
    ordered = sorted(outcomes, key=lambda o: o.start_time or datetime.min.replace(tzinfo=UTC), reverse=True)
    return [o.to_dict() for o in ordered[:limit]]


@router.get("/outcomes/summary")
async def outcomes_summary(
    request: Request,
    status: str | None = None,
    requirement: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> dict[str, Any]:
    outcomes = await _select(request, status, requirement, since, until)
    return outcomes.summary()


@router.get("/outcomes/{identifier}")
async def outcome_history(request: Request, identifier: str) -> list[dict[str, Any]]:
    history = request.app.state.history
    records = await history.get_history(identifier)
    if not records:
        raise HTTPException(status_code=404, detail=f"Unknown test: {identifier}")
    return [r.to_dict() for r in records]


@router.get("/events")
async def get_recent_events(
    request: Request,
    limit: int = 20,
    event_type: str | None = None,
    identifier: str | None = None,
) -> list[dict[str, Any]]:
    """Recent outcome events recorded by runs."""
    event_log = request.app.state.event_log
    events = await event_log.get_recent(limit=limit, event_type=event_type, identifier=identifier)
    return [e.to_dict() for e in events]


@router.get("/events/counts")
async def get_event_counts(request: Request) -> dict[str, int]:
    return await request.app.state.event_log.counts()
