"""SQLite-backed log of recent outcome events, written by runs and served by the API."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from steptrail.events.emitter import OutcomeEvent

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    identifier TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type);
"""


class EventLog:
    """Keeps the last *max_size* events (0 keeps all). Implements the EventListener protocol.

    Any number of logs may share one database file: a run records events
    through one instance while the API reads them through another.
    """

    def __init__(self, db_path: str = "steptrail_history.db", max_size: int = 100) -> None:
        self._db_path = db_path
        self._max_size = max_size
        self._initialized = False

    async def _init_connection(self, db: aiosqlite.Connection) -> None:
        if not self._initialized:
            await db.executescript(_CREATE_TABLES)
            self._initialized = True

    async def on_event(self, event: OutcomeEvent) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            await db.execute(
                "INSERT INTO events (event_type, timestamp, identifier, data) VALUES (?, ?, ?, ?)",
                (event.event_type, event.timestamp.isoformat(), event.identifier, json.dumps(event.data)),
            )
            if self._max_size > 0:
                await db.execute(
                    "DELETE FROM events WHERE id NOT IN (SELECT id FROM events ORDER BY id DESC LIMIT ?)",
                    (self._max_size,),
                )
            await db.commit()

    @staticmethod
    def _row_to_event(row: Any) -> OutcomeEvent:
        timestamp = datetime.fromisoformat(str(row[1]))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return OutcomeEvent(
            event_type=str(row[0]),
            timestamp=timestamp,
            identifier=str(row[2]),
            data=dict(json.loads(row[3] or "{}")),
        )

    async def get_recent(
        self,
        limit: int = 20,
        event_type: str | None = None,
        identifier: str | None = None,
    ) -> list[OutcomeEvent]:
        """Newest first, optionally narrowed to one event type and/or one test."""
        clauses: list[str] = []
        params: list[Any] = []
        if event_type:
            clauses.append("event_type = ?")
            params.append(event_type)
        if identifier:
            clauses.append("identifier = ?")
            params.append(identifier)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                f"SELECT event_type, timestamp, identifier, data FROM events{where} ORDER BY id DESC LIMIT ?",
                (*params, limit),
            ))
        return [self._row_to_event(r) for r in rows]

    async def counts(self) -> dict[str, int]:
        """Number of retained events per event type."""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                "SELECT event_type, COUNT(*) FROM events GROUP BY event_type ORDER BY event_type"
            ))
        return {str(r[0]): int(r[1]) for r in rows}
