"""Persistencia SQLite asíncrona para lecturas, retests y configuración."""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

import aiosqlite
import structlog

from glucose_tracker.errors import FetchFailure, WriteFailure
from glucose_tracker.model import Reading, Retest, Session

logger = structlog.get_logger()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS glucose_readings (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    session TEXT NOT NULL,
    reading INTEGER,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(date, session)
);

CREATE TABLE IF NOT EXISTS glucose_retests (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    reading INTEGER NOT NULL,
    notes TEXT,
    recorded_at TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 7
);

CREATE INDEX IF NOT EXISTS idx_glucose_readings_date
ON glucose_readings(date);

CREATE INDEX IF NOT EXISTS idx_glucose_retests_date
ON glucose_retests(date);
"""

_UNSET: Any = object()


class GlucoseStore(Protocol):
    """Read/write contract the day tracker and exporter rely on."""

    async def fetch_readings(self, day: date) -> list[Reading]: ...

    async def fetch_retests(self, day: date) -> list[Retest]: ...

    async def fetch_readings_range(self, start: date, end: date) -> list[Reading]: ...

    async def fetch_retests_range(self, start: date, end: date) -> list[Retest]: ...

    async def upsert_reading(
        self,
        day: date,
        session: Session,
        value: int | None,
        note: str | None,
        updated_at: datetime,
    ) -> Reading: ...

    async def insert_retest(
        self,
        day: date,
        value: int,
        note: str | None,
        recorded_at: datetime,
        position: int,
    ) -> Retest: ...

    async def update_retest(
        self,
        retest_id: str,
        *,
        position: int = ...,
        note: str | None = ...,
        recorded_at: datetime = ...,
    ) -> None: ...

    async def delete_retest(self, retest_id: str) -> None: ...


class SQLiteStore:
    """Repositorio SQLite (aiosqlite) para el tracker."""

    def __init__(self, db_path: Path) -> None:
        """Create store; the schema is created on first use."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ready = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def open(self) -> SQLiteStore:
        """Ensure the schema exists."""
        async with self._connect():
            pass
        return self

    async def __aenter__(self) -> SQLiteStore:
        return await self.open()

    async def __aexit__(self, *_exc: object) -> None:
        return None

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self._db_path) as conn:
            conn.row_factory = aiosqlite.Row
            if not self._ready:
                await conn.executescript(SCHEMA_SQL)
                await conn.commit()
                self._ready = True
            yield conn

    async def _fetch(self, sql: str, params: tuple[object, ...]) -> list[Any]:
        try:
            async with self._connect() as conn:
                async with conn.execute(sql, params) as cur:
                    return list(await cur.fetchall())
        except sqlite3.Error as exc:
            logger.error("Store read failed", error=str(exc))
            raise FetchFailure(str(exc)) from exc

    async def fetch_readings(self, day: date) -> list[Reading]:
        """Readings of one day, ordered by creation time."""
        rows = await self._fetch(
            "SELECT * FROM glucose_readings WHERE date = ? ORDER BY created_at",
            (day.isoformat(),),
        )
        return [_row_to_reading(row) for row in rows]

    async def fetch_retests(self, day: date) -> list[Retest]:
        """Retests of one day, ordered by recorded time."""
        rows = await self._fetch(
            "SELECT * FROM glucose_retests WHERE date = ? ORDER BY recorded_at, id",
            (day.isoformat(),),
        )
        return [_row_to_retest(row) for row in rows]

    async def fetch_readings_range(self, start: date, end: date) -> list[Reading]:
        """Readings with start <= date <= end, by date then creation time."""
        rows = await self._fetch(
            """
            SELECT * FROM glucose_readings
            WHERE date >= ? AND date <= ?
            ORDER BY date, created_at
            """,
            (start.isoformat(), end.isoformat()),
        )
        return [_row_to_reading(row) for row in rows]

    async def fetch_retests_range(self, start: date, end: date) -> list[Retest]:
        """Retests with start <= date <= end, by date then recorded time."""
        rows = await self._fetch(
            """
            SELECT * FROM glucose_retests
            WHERE date >= ? AND date <= ?
            ORDER BY date, recorded_at, id
            """,
            (start.isoformat(), end.isoformat()),
        )
        return [_row_to_retest(row) for row in rows]

    async def upsert_reading(
        self,
        day: date,
        session: Session,
        value: int | None,
        note: str | None,
        updated_at: datetime,
    ) -> Reading:
        """Create or overwrite the reading for (day, session)."""
        stamp = updated_at.isoformat()
        try:
            async with self._connect() as conn:
                await conn.execute(
                    """
                    INSERT INTO glucose_readings(
                        id, date, session, reading, notes, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(date, session) DO UPDATE SET
                        reading=excluded.reading,
                        notes=excluded.notes,
                        updated_at=excluded.updated_at
                    """,
                    (
                        uuid4().hex,
                        day.isoformat(),
                        session.value,
                        value,
                        note,
                        stamp,
                        stamp,
                    ),
                )
                await conn.commit()
                async with conn.execute(
                    "SELECT * FROM glucose_readings WHERE date = ? AND session = ?",
                    (day.isoformat(), session.value),
                ) as cur:
                    row = await cur.fetchone()
        except sqlite3.Error as exc:
            raise WriteFailure(str(exc)) from exc
        if row is None:
            raise WriteFailure(f"Reading {day} / {session.value} not stored")
        return _row_to_reading(row)

    async def insert_retest(
        self,
        day: date,
        value: int,
        note: str | None,
        recorded_at: datetime,
        position: int,
    ) -> Retest:
        """Insert a new retest row and return it."""
        retest = Retest(
            id=uuid4().hex,
            day=day,
            value=value,
            note=note,
            recorded_at=recorded_at,
            position=position,
        )
        try:
            async with self._connect() as conn:
                await conn.execute(
                    """
                    INSERT INTO glucose_retests(
                        id, date, reading, notes, recorded_at, position
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        retest.id,
                        day.isoformat(),
                        value,
                        note,
                        recorded_at.isoformat(),
                        position,
                    ),
                )
                await conn.commit()
        except sqlite3.Error as exc:
            raise WriteFailure(str(exc)) from exc
        return retest

    async def update_retest(
        self,
        retest_id: str,
        *,
        position: int = _UNSET,
        note: str | None = _UNSET,
        recorded_at: datetime = _UNSET,
    ) -> None:
        """Update any subset of position, notes and recorded time.

        Raises:
            WriteFailure: On SQLite errors or when the id does not exist.
        """
        changes: dict[str, object] = {}
        if position is not _UNSET:
            changes["position"] = position
        if note is not _UNSET:
            changes["notes"] = note
        if recorded_at is not _UNSET:
            changes["recorded_at"] = recorded_at.isoformat()
        if not changes:
            return
        assignments = ", ".join(f"{col} = ?" for col in changes)
        try:
            async with self._connect() as conn:
                cur = await conn.execute(
                    f"UPDATE glucose_retests SET {assignments} WHERE id = ?",
                    (*changes.values(), retest_id),
                )
                await conn.commit()
                updated = cur.rowcount
        except sqlite3.Error as exc:
            raise WriteFailure(str(exc)) from exc
        if updated == 0:
            raise WriteFailure(f"No retest with id {retest_id}")

    async def delete_retest(self, retest_id: str) -> None:
        """Delete a retest by id."""
        try:
            async with self._connect() as conn:
                await conn.execute(
                    "DELETE FROM glucose_retests WHERE id = ?", (retest_id,)
                )
                await conn.commit()
        except sqlite3.Error as exc:
            raise WriteFailure(str(exc)) from exc

    async def load_settings(self) -> dict[str, str]:
        """Devuelve la tabla key/value de configuración."""
        rows = await self._fetch("SELECT key, value FROM app_config", ())
        return {row["key"]: row["value"] for row in rows}

    async def save_settings(self, values: Mapping[str, str]) -> None:
        """Guarda la configuración en tabla key/value."""
        try:
            async with self._connect() as conn:
                await conn.executemany(
                    """
                    INSERT INTO app_config(key, value) VALUES(?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value
                    """,
                    list(values.items()),
                )
                await conn.commit()
        except sqlite3.Error as exc:
            raise WriteFailure(str(exc)) from exc


def _row_to_reading(row: Mapping[str, Any]) -> Reading:
    return Reading(
        id=str(row["id"]),
        day=date.fromisoformat(row["date"]),
        session=Session(row["session"]),
        value=row["reading"],
        note=row["notes"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_retest(row: Mapping[str, Any]) -> Retest:
    return Retest(
        id=str(row["id"]),
        day=date.fromisoformat(row["date"]),
        value=int(row["reading"]),
        note=row["notes"],
        recorded_at=datetime.fromisoformat(row["recorded_at"]),
        position=int(row["position"]),
    )
