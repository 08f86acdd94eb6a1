"""Agregado diario: siete slots de lectura más retests, y su sincronización."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime

import structlog

from glucose_tracker import ordering
from glucose_tracker.errors import FetchFailure, MissingValue, WriteFailure
from glucose_tracker.model import (
    DEFAULT_RETEST_POSITION,
    SESSIONS,
    Reading,
    Retest,
    Session,
    now,
    placeholder_reading,
)
from glucose_tracker.storage import GlucoseStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class DayAggregate:
    """One day's readings (always seven, in session order) and retests."""

    day: date
    readings: tuple[Reading, ...]
    retests: tuple[Retest, ...]

    def reading_for(self, session: Session) -> Reading:
        return self.readings[session.index]

    def retest(self, retest_id: str) -> Retest:
        return ordering.find_retest(self.retests, retest_id)

    def entries(self) -> list[ordering.DayEntry]:
        """Readings and retests in display order."""
        return ordering.order_day(self.readings, self.retests)


def build_day(
    day: date,
    persisted_readings: Iterable[Reading],
    persisted_retests: Iterable[Retest],
    *,
    when: datetime | None = None,
) -> DayAggregate:
    """Build the aggregate, synthesizing placeholders for missing sessions."""
    stamp = when or now()
    by_session = {r.session: r for r in persisted_readings if r.day == day}
    readings = tuple(
        by_session.get(session) or placeholder_reading(day, session, stamp)
        for session in SESSIONS
    )
    return DayAggregate(
        day=day,
        readings=readings,
        retests=ordering.sort_retests(persisted_retests),
    )


def reading_unchanged(
    agg: DayAggregate, session: Session, value: int | None, note: str | None
) -> bool:
    current = agg.reading_for(session)
    return current.value == value and (current.note or None) == (note or None)


def with_saved_reading(
    agg: DayAggregate,
    session: Session,
    value: int | None,
    note: str | None,
    *,
    when: datetime,
) -> DayAggregate:
    readings = tuple(
        replace(r, value=value, note=note, updated_at=when)
        if r.session == session
        else r
        for r in agg.readings
    )
    return replace(agg, readings=readings)


def with_stored_reading(agg: DayAggregate, stored: Reading) -> DayAggregate:
    """Replace the slot with the row the store returned."""
    readings = tuple(
        stored if r.session == stored.session else r for r in agg.readings
    )
    return replace(agg, readings=readings)


def with_added_retest(agg: DayAggregate, retest: Retest) -> DayAggregate:
    return replace(agg, retests=ordering.sort_retests((*agg.retests, retest)))


def with_moved_retest(
    agg: DayAggregate, retest_id: str, position: int
) -> DayAggregate:
    return replace(agg, retests=ordering.move(agg.retests, retest_id, position))


def with_retest_note(
    agg: DayAggregate, retest_id: str, note: str | None
) -> DayAggregate:
    agg.retest(retest_id)
    retests = tuple(
        replace(rt, note=note) if rt.id == retest_id else rt for rt in agg.retests
    )
    return replace(agg, retests=retests)


def with_retest_recorded_at(
    agg: DayAggregate, retest_id: str, recorded_at: datetime
) -> DayAggregate:
    agg.retest(retest_id)
    retests = (
        replace(rt, recorded_at=recorded_at) if rt.id == retest_id else rt
        for rt in agg.retests
    )
    return replace(agg, retests=ordering.sort_retests(retests))


def without_retest(agg: DayAggregate, retest_id: str) -> DayAggregate:
    agg.retest(retest_id)
    return replace(
        agg, retests=tuple(rt for rt in agg.retests if rt.id != retest_id)
    )


class DayTracker:
    """Holds one day's aggregate and keeps it in sync with the store.

    Local state is updated before each store round-trip. A failed write is
    logged and the whole day is reloaded from the store; nothing is merged.
    Writes to the same reading slot or retest are serialized.
    """

    def __init__(self, store: GlucoseStore, day: date) -> None:
        self._store = store
        self._day = day
        self._agg = build_day(day, (), ())
        self._locks: dict[str, asyncio.Lock] = {}
        self._intents: dict[str, int] = {}
        self.error: str | None = None
        self.loaded = False
        self.write_failures = 0

    @property
    def day(self) -> date:
        return self._day

    @property
    def aggregate(self) -> DayAggregate:
        return self._agg

    async def load(self) -> DayAggregate:
        """Fetch the day from the store.

        Raises:
            FetchFailure: If either query fails; ``error`` keeps the message.
        """
        self.error = None
        try:
            readings = await self._store.fetch_readings(self._day)
            retests = await self._store.fetch_retests(self._day)
        except FetchFailure as exc:
            self.error = str(exc) or "Failed to fetch readings"
            self.loaded = False
            logger.error("Error fetching readings", day=str(self._day), error=str(exc))
            raise
        self._agg = build_day(self._day, readings, retests)
        self.loaded = True
        return self._agg

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _reconcile(self, action: str, exc: Exception, **fields: object) -> None:
        self.write_failures += 1
        logger.error(
            "Store write failed, reloading day",
            action=action,
            day=str(self._day),
            error=str(exc),
            **fields,
        )
        try:
            await self.load()
        except FetchFailure:
            # load() already recorded the error state.
            pass

    async def save_reading(
        self, session: Session, value: int | None, note: str | None
    ) -> bool:
        """Upsert the reading for ``session``.

        Returns:
            False when nothing changed or the write failed, True otherwise.
        """
        note = note or None
        if reading_unchanged(self._agg, session, value, note):
            return False
        key = f"reading:{session.name}"
        intent = self._intents[key] = self._intents.get(key, 0) + 1
        self._agg = with_saved_reading(self._agg, session, value, note, when=now())
        async with self._lock(key):
            try:
                stored = await self._store.upsert_reading(
                    self._day, session, value, note, now()
                )
            except WriteFailure as exc:
                await self._reconcile("save_reading", exc, session=session.value)
                return False
        # A newer save for this slot is queued; keep its optimistic value.
        if self._intents.get(key) == intent:
            self._agg = with_stored_reading(self._agg, stored)
        logger.info(
            "Reading saved", day=str(self._day), session=session.value, value=value
        )
        return True

    async def add_retest(
        self,
        value: int | None,
        note: str | None = None,
        position: int = DEFAULT_RETEST_POSITION,
    ) -> Retest | None:
        """Insert a retest recorded now.

        Raises:
            MissingValue: If ``value`` is None.
            InvalidPosition: If ``position`` is outside [0, 7].
        """
        if value is None:
            raise MissingValue("A retest needs a glucose value")
        ordering.validate_position(position)
        try:
            retest = await self._store.insert_retest(
                self._day, value, note or None, now(), position
            )
        except WriteFailure as exc:
            await self._reconcile("add_retest", exc)
            return None
        self._agg = with_added_retest(self._agg, retest)
        logger.info(
            "Retest added", day=str(self._day), retest_id=retest.id, position=position
        )
        return retest

    async def _apply_move(self, retest_id: str, position: int) -> None:
        self._agg = with_moved_retest(self._agg, retest_id, position)
        async with self._lock(f"retest:{retest_id}"):
            try:
                await self._store.update_retest(retest_id, position=position)
            except WriteFailure as exc:
                await self._reconcile("move_retest", exc, retest_id=retest_id)

    async def move_retest(self, retest_id: str, position: int) -> None:
        """Re-anchor a retest after session ``position``.

        Raises:
            InvalidPosition: If ``position`` is outside [0, 7].
            RetestNotFound: If the retest is not in the loaded day.
        """
        await self._apply_move(retest_id, position)

    async def step_retest_up(self, retest_id: str) -> bool:
        target = ordering.step_target(self._agg.retests, retest_id, -1)
        if target is None:
            return False
        await self._apply_move(retest_id, target)
        return True

    async def step_retest_down(self, retest_id: str) -> bool:
        target = ordering.step_target(self._agg.retests, retest_id, +1)
        if target is None:
            return False
        await self._apply_move(retest_id, target)
        return True

    async def drop_retest(self, retest_id: str, drop_index: int) -> int:
        """Drag-and-drop: anchor the retest where it was dropped."""
        target = ordering.drop_target(self._agg.entries(), drop_index)
        await self._apply_move(retest_id, target)
        return target

    async def update_retest_note(self, retest_id: str, note: str | None) -> None:
        note = note or None
        self._agg = with_retest_note(self._agg, retest_id, note)
        async with self._lock(f"retest:{retest_id}"):
            try:
                await self._store.update_retest(retest_id, note=note)
            except WriteFailure as exc:
                await self._reconcile("update_retest_note", exc, retest_id=retest_id)

    async def update_retest_recorded_at(
        self, retest_id: str, recorded_at: datetime
    ) -> None:
        self._agg = with_retest_recorded_at(self._agg, retest_id, recorded_at)
        async with self._lock(f"retest:{retest_id}"):
            try:
                await self._store.update_retest(retest_id, recorded_at=recorded_at)
            except WriteFailure as exc:
                await self._reconcile(
                    "update_retest_recorded_at", exc, retest_id=retest_id
                )

    async def delete_retest(self, retest_id: str) -> None:
        """Delete a retest. No confirmation is asked here."""
        self._agg = without_retest(self._agg, retest_id)
        async with self._lock(f"retest:{retest_id}"):
            try:
                await self._store.delete_retest(retest_id)
            except WriteFailure as exc:
                await self._reconcile("delete_retest", exc, retest_id=retest_id)
                return
        self._locks.pop(f"retest:{retest_id}", None)
        logger.info("Retest deleted", day=str(self._day), retest_id=retest_id)
