"""Orden del día: lecturas programadas intercaladas con retests."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal

from glucose_tracker.errors import InvalidPosition, RetestNotFound
from glucose_tracker.model import (
    END_OF_DAY_POSITION,
    MAX_POSITION,
    MIN_POSITION,
    SESSIONS,
    Reading,
    Retest,
)

EntryKind = Literal["reading", "retest"]


@dataclass(frozen=True)
class DayEntry:
    """One row of the rendered day.

    ``slot`` is the session index the row belongs to; retests anchored at
    or past the end of the day share slot ``END_OF_DAY_POSITION``.
    """

    kind: EntryKind
    item: Reading | Retest
    slot: int


def retest_sort_key(retest: Retest) -> tuple[int, datetime, str]:
    """Total order for retests: anchor, then draw time, then id."""
    return (retest.position, retest.recorded_at, retest.id)


def sort_retests(retests: Iterable[Retest]) -> tuple[Retest, ...]:
    return tuple(sorted(retests, key=retest_sort_key))


def order_day(
    readings: Sequence[Reading], retests: Iterable[Retest]
) -> list[DayEntry]:
    """Interleave the day's readings and retests into display order.

    Args:
        readings: One reading per session (placeholders included).
        retests: Every retest of the day, in any order.

    Returns:
        Reading for session 0, retests anchored at 0, reading for session 1,
        and so on; retests at position >= 7 close the list.
    """
    by_session = {r.session: r for r in readings}
    ordered = sort_retests(retests)
    out: list[DayEntry] = []
    for idx, session in enumerate(SESSIONS):
        reading = by_session.get(session)
        if reading is not None:
            out.append(DayEntry("reading", reading, idx))
        out.extend(
            DayEntry("retest", rt, idx) for rt in ordered if rt.position == idx
        )
    out.extend(
        DayEntry("retest", rt, END_OF_DAY_POSITION)
        for rt in ordered
        if rt.position >= END_OF_DAY_POSITION
    )
    return out


def validate_position(position: object) -> int:
    """Return ``position`` if it is a valid anchor.

    Raises:
        InvalidPosition: If it is not an int in [0, 7].
    """
    if isinstance(position, bool) or not isinstance(position, int):
        raise InvalidPosition(f"Position must be an integer, got {position!r}")
    if not MIN_POSITION <= position <= MAX_POSITION:
        raise InvalidPosition(
            f"Position {position} outside [{MIN_POSITION}, {MAX_POSITION}]"
        )
    return position


def find_retest(retests: Iterable[Retest], retest_id: str) -> Retest:
    for retest in retests:
        if retest.id == retest_id:
            return retest
    raise RetestNotFound(f"No retest with id {retest_id}")


def move(
    retests: Iterable[Retest], retest_id: str, new_position: int
) -> tuple[Retest, ...]:
    """Re-anchor one retest; every other retest keeps its position.

    Positions are not a dense rank, so collisions are allowed and resolved
    by ``retest_sort_key``.

    Raises:
        InvalidPosition: If ``new_position`` is out of range.
        RetestNotFound: If ``retest_id`` is not among ``retests``.
    """
    validate_position(new_position)
    current = tuple(retests)
    find_retest(current, retest_id)
    moved = [
        replace(rt, position=new_position) if rt.id == retest_id else rt
        for rt in current
    ]
    return sort_retests(moved)


def step_target(retests: Iterable[Retest], retest_id: str, delta: int) -> int | None:
    """Position one step up (-1) or down (+1), None at the edges."""
    retest = find_retest(retests, retest_id)
    # Retests past the last session step back into slot 6 first.
    base = min(retest.position, END_OF_DAY_POSITION)
    target = base + delta
    if not MIN_POSITION <= target <= MAX_POSITION:
        return None
    return target


def drop_target(entries: Sequence[DayEntry], drop_index: int) -> int:
    """Anchor position for a retest dropped at ``drop_index``.

    ``drop_index`` is an insertion index into ``entries`` (0 = before the
    first row, ``len(entries)`` = after the last). The retest anchors after
    the session slot of the row just above the drop point.
    """
    if not entries or drop_index <= 0:
        return MIN_POSITION
    above = entries[min(drop_index, len(entries)) - 1]
    return above.slot
