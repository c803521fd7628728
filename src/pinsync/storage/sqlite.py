"""SQLite implementation of the CycleHistory protocol."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from pinsync.models.records import CycleReport

SCHEMA = """
-- One row per sync cycle, successful or failed
CREATE TABLE IF NOT EXISTS sync_cycles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    started_at TEXT NOT NULL,
    completed_at TEXT NOT NULL,
    contracts INTEGER NOT NULL,
    desired_cids INTEGER NOT NULL,
    pinned INTEGER NOT NULL,
    unpinned INTEGER NOT NULL,
    errors INTEGER NOT NULL,
    duration_ms INTEGER NOT NULL,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_sync_cycles_started ON sync_cycles(started_at);
"""


class SQLiteHistoryStore:
    """SQLite-backed journal of sync cycles."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    async def save_cycle_report(self, report: CycleReport) -> None:
        await self.db.execute(
            "INSERT INTO sync_cycles"
            " (started_at, completed_at, contracts, desired_cids, pinned,"
            "  unpinned, errors, duration_ms, error)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                report.started_at, report.completed_at, report.contracts,
                report.desired_cids, report.pinned, report.unpinned,
                report.errors, report.duration_ms, report.error,
            ),
        )
        await self.db.commit()

    async def get_cycle_history(self, limit: int = 10) -> list[CycleReport]:
        async with self.db.execute(
            "SELECT * FROM sync_cycles ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_report(row) async for row in cur]


def _row_to_report(row: aiosqlite.Row) -> CycleReport:
    return CycleReport(
        cycle_id=row["id"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        contracts=row["contracts"],
        desired_cids=row["desired_cids"],
        pinned=row["pinned"],
        unpinned=row["unpinned"],
        errors=row["errors"],
        duration_ms=row["duration_ms"],
        error=row["error"],
    )
