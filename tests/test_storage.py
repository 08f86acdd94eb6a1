from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest

from glucose_tracker.errors import FetchFailure, WriteFailure
from glucose_tracker.model import Session, local_tz
from glucose_tracker.storage import SQLiteStore

T0 = datetime(2025, 1, 2, 8, 0, tzinfo=local_tz())


@pytest.mark.asyncio
async def test_upsert_is_keyed_on_date_and_session(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    day = date(2025, 1, 2)

    first = await store.upsert_reading(day, Session.FASTING, 123, "ayuno", T0)
    later = T0 + timedelta(hours=1)
    second = await store.upsert_reading(day, Session.FASTING, 118, None, later)

    assert second.id == first.id
    assert second.value == 118
    assert second.note is None
    assert second.created_at == T0
    assert second.updated_at == later

    rows = await store.fetch_readings(day)
    assert len(rows) == 1
    assert rows[0].session is Session.FASTING


@pytest.mark.asyncio
async def test_retest_insert_update_delete(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    day = date(2025, 1, 2)

    late = await store.insert_retest(day, 150, None, T0 + timedelta(hours=5), 7)
    early = await store.insert_retest(day, 60, "mareo", T0, 0)
    assert [r.id for r in await store.fetch_retests(day)] == [early.id, late.id]

    await store.update_retest(late.id, position=3)
    await store.update_retest(late.id, note="tras caminar")
    await store.update_retest(late.id, recorded_at=T0 - timedelta(hours=1))
    stored = {r.id: r for r in await store.fetch_retests(day)}
    assert stored[late.id].position == 3
    assert stored[late.id].note == "tras caminar"
    assert stored[late.id].value == 150
    assert stored[early.id].position == 0

    await store.delete_retest(early.id)
    assert [r.id for r in await store.fetch_retests(day)] == [late.id]


@pytest.mark.asyncio
async def test_update_unknown_retest_is_write_failure(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    with pytest.raises(WriteFailure):
        await store.update_retest("missing", position=1)


@pytest.mark.asyncio
async def test_range_queries_are_inclusive_and_ordered(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    for offset in range(4):
        day = date(2025, 1, 1) + timedelta(days=offset)
        stamp = T0 + timedelta(days=offset)
        await store.upsert_reading(day, Session.BEDTIME, 100 + offset, None, stamp)
        await store.upsert_reading(
            day, Session.FASTING, 90, None, stamp - timedelta(hours=1)
        )
        await store.insert_retest(day, 80 + offset, None, stamp, 7)

    readings = await store.fetch_readings_range(date(2025, 1, 2), date(2025, 1, 3))
    assert [(r.day.day, r.session) for r in readings] == [
        (2, Session.FASTING),
        (2, Session.BEDTIME),
        (3, Session.FASTING),
        (3, Session.BEDTIME),
    ]
    retests = await store.fetch_retests_range(date(2025, 1, 2), date(2025, 1, 3))
    assert [r.value for r in retests] == [81, 82]


@pytest.mark.asyncio
async def test_settings_round_trip(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert await store.load_settings() == {}
    await store.save_settings({"export_dir": "/data/out", "export_format": "pdf"})
    await store.save_settings({"export_format": "csv"})
    assert await store.load_settings() == {
        "export_dir": "/data/out",
        "export_format": "csv",
    }


@pytest.mark.asyncio
async def test_sqlite_errors_become_store_errors(tmp_path: Path) -> None:
    db_path = tmp_path / "app.sqlite3"
    store = await SQLiteStore(db_path).open()
    with sqlite3.connect(db_path) as conn:
        conn.execute("DROP TABLE glucose_readings")
    with pytest.raises(FetchFailure):
        await store.fetch_readings(date(2025, 1, 2))
    with pytest.raises(WriteFailure):
        await store.upsert_reading(date(2025, 1, 2), Session.FASTING, 1, None, T0)
