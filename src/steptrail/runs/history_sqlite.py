"""SQLite-backed execution history backend."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from steptrail.model.status import Status
from steptrail.runs.history import OutcomeRecord, StepRecord

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS test_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    method_identifier TEXT NOT NULL,
    title TEXT NOT NULL,
    requirement_tags TEXT NOT NULL DEFAULT '[]',
    started_at TEXT NOT NULL,
    completed_at TEXT,
    status TEXT NOT NULL,
    duration_ms REAL NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS step_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id INTEGER NOT NULL REFERENCES test_runs(id) ON DELETE CASCADE,
    parent_id INTEGER REFERENCES step_runs(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL,
    is_group INTEGER NOT NULL DEFAULT 0,
    started_at TEXT,
    duration_ms REAL NOT NULL DEFAULT 0,
    error_message TEXT,
    error_kind TEXT
);

CREATE INDEX IF NOT EXISTS idx_test_runs_identifier ON test_runs(method_identifier);
CREATE INDEX IF NOT EXISTS idx_step_runs_run ON step_runs(run_id);
"""

_RUN_COLUMNS = (
    "id, method_identifier, title, requirement_tags, started_at, completed_at, status, duration_ms"
)


class SqliteHistory:
    """SQLite-backed execution history with optional retention pruning."""

    def __init__(self, db_path: str = "steptrail_history.db", max_records: int = 0) -> None:
        self._db_path = db_path
        self._max_records = max_records
        self._initialized = False

    async def _init_connection(self, db: aiosqlite.Connection) -> None:
        """Enable foreign keys (must run per-connection) and create tables on first use."""
        await db.execute("PRAGMA foreign_keys = ON")
        if not self._initialized:
            await db.executescript(_CREATE_TABLES)
            self._initialized = True

    async def _insert_steps(
        self,
        db: aiosqlite.Connection,
        run_id: int,
        steps: list[StepRecord],
        parent_id: int | None = None,
    ) -> None:
        for position, step in enumerate(steps):
            cursor = await db.execute(
                "INSERT INTO step_runs (run_id, parent_id, position, description, status, is_group,"
                " started_at, duration_ms, error_message, error_kind) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    run_id,
                    parent_id,
                    position,
                    step.description,
                    step.status.value,
                    int(step.is_group),
                    step.started_at.isoformat() if step.started_at else None,
                    step.duration_ms,
                    step.error_message,
                    step.error_kind,
                ),
            )
            if step.children:
                assert cursor.lastrowid is not None
                await self._insert_steps(db, run_id, step.children, cursor.lastrowid)

    async def record(self, execution: OutcomeRecord) -> None:
        """Store an outcome record and its full step tree."""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            cursor = await db.execute(
                "INSERT INTO test_runs (method_identifier, title, requirement_tags, started_at, completed_at,"
                " status, duration_ms) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    execution.method_identifier,
                    execution.title,
                    json.dumps(list(execution.requirement_tags)),
                    execution.started_at.isoformat(),
                    execution.completed_at.isoformat() if execution.completed_at else None,
                    execution.status.value,
                    execution.duration_ms,
                ),
            )
            assert cursor.lastrowid is not None
            await self._insert_steps(db, cursor.lastrowid, execution.steps)

            # Retention pruning
            if self._max_records > 0:
                count_rows = list(await db.execute_fetchall(
                    "SELECT COUNT(*) FROM test_runs WHERE method_identifier = ?",
                    (execution.method_identifier,),
                ))
                count = int(count_rows[0][0])
                excess = count - self._max_records
                if excess > 0:
                    await db.execute(
                        "DELETE FROM test_runs WHERE id IN ("
                        "  SELECT id FROM test_runs WHERE method_identifier = ?"
                        "  ORDER BY started_at ASC, id ASC LIMIT ?"
                        ")",
                        (execution.method_identifier, excess),
                    )

            await db.commit()

    async def _load_steps(self, db: aiosqlite.Connection, run_id: int) -> list[StepRecord]:
        # Rows were inserted parent-first, so id order rebuilds the tree in one pass
        rows = list(await db.execute_fetchall(
            "SELECT id, parent_id, description, status, is_group, started_at, duration_ms,"
            " error_message, error_kind FROM step_runs WHERE run_id = ? ORDER BY id",
            (run_id,),
        ))
        by_id: dict[int, StepRecord] = {}
        roots: list[StepRecord] = []
        for r in rows:
            step = StepRecord(
                description=str(r[2]),
                status=Status.parse(str(r[3])),
                is_group=bool(r[4]),
                started_at=self._parse_dt(str(r[5]) if r[5] is not None else None),
                duration_ms=float(r[6]),
                error_message=str(r[7]) if r[7] is not None else None,
                error_kind=str(r[8]) if r[8] is not None else None,
            )
            by_id[int(r[0])] = step
            if r[1] is None:
                roots.append(step)
            else:
                by_id[int(r[1])].children.append(step)
        return roots

    def _parse_dt(self, val: str | None) -> datetime | None:
        if val is None:
            return None
        parsed = datetime.fromisoformat(val)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

    async def _rows_to_records(self, db: aiosqlite.Connection, rows: list[Any]) -> list[OutcomeRecord]:
        records: list[OutcomeRecord] = []
        for r in rows:
            steps = await self._load_steps(db, int(r[0]))
            records.append(
                OutcomeRecord(
                    method_identifier=str(r[1]),
                    title=str(r[2]),
                    requirement_tags=list(json.loads(r[3] or "[]")),
                    started_at=self._parse_dt(str(r[4])) or datetime.now(UTC),
                    completed_at=self._parse_dt(str(r[5]) if r[5] else None),
                    status=Status.parse(str(r[6])),
                    duration_ms=float(r[7]),
                    steps=steps,
                )
            )
        return records

    async def get_history(self, method_identifier: str) -> list[OutcomeRecord]:
        """Execution history for one test, newest first."""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                f"SELECT {_RUN_COLUMNS} FROM test_runs WHERE method_identifier = ?"
                " ORDER BY started_at DESC, id DESC",
                (method_identifier,),
            ))
            return await self._rows_to_records(db, rows)

    async def get_all(self) -> dict[str, list[OutcomeRecord]]:
        """All execution history grouped by test identifier."""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                f"SELECT {_RUN_COLUMNS} FROM test_runs ORDER BY started_at DESC, id DESC"
            ))
            records = await self._rows_to_records(db, rows)
            result: dict[str, list[OutcomeRecord]] = {}
            for rec in records:
                result.setdefault(rec.method_identifier, []).append(rec)
            return result

    async def get_recent(self, limit: int = 10) -> list[OutcomeRecord]:
        """Most recent records across all tests."""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                f"SELECT {_RUN_COLUMNS} FROM test_runs ORDER BY started_at DESC, id DESC LIMIT ?",
                (limit,),
            ))
            return await self._rows_to_records(db, rows)
