from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from glucose_tracker.errors import InvalidPosition, RetestNotFound
from glucose_tracker.model import SESSIONS, Retest, local_tz, placeholder_reading
from glucose_tracker.ordering import (
    DayEntry,
    drop_target,
    move,
    order_day,
    sort_retests,
    step_target,
    validate_position,
)

DAY = date(2025, 3, 4)
T0 = datetime(2025, 3, 4, 8, 0, tzinfo=local_tz())


def _readings() -> list:
    return [placeholder_reading(DAY, s, T0) for s in SESSIONS]


def _retest(rid: str, position: int, minutes: int) -> Retest:
    return Retest(
        id=rid,
        day=DAY,
        value=100,
        note=None,
        recorded_at=T0 + timedelta(minutes=minutes),
        position=position,
    )


def _layout(entries: list[DayEntry]) -> list[str]:
    out = []
    for entry in entries:
        if entry.kind == "reading":
            out.append(f"S{entry.item.session.index}")
        else:
            out.append(entry.item.id)
    return out


def test_order_day_interleaves_retests_after_their_session() -> None:
    retests = [
        _retest("end", 7, 1),
        _retest("b", 0, 30),
        _retest("a", 0, 10),
        _retest("six", 6, 5),
        _retest("two", 2, 0),
    ]
    layout = _layout(order_day(_readings(), retests))
    assert layout == [
        "S0", "a", "b",
        "S1",
        "S2", "two",
        "S3", "S4", "S5",
        "S6", "six",
        "end",
    ]  # fmt: skip


def test_order_day_ties_are_broken_by_recorded_time_then_id() -> None:
    retests = [_retest("z", 3, 0), _retest("y", 3, 0), _retest("x", 3, -5)]
    layout = _layout(order_day(_readings(), retests))
    start = layout.index("S3")
    assert layout[start : start + 4] == ["S3", "x", "y", "z"]


def test_order_day_every_retest_between_its_session_and_the_next() -> None:
    retests = [_retest(f"r{i}", i % 8, i) for i in range(16)]
    layout = _layout(order_day(_readings(), retests))
    for rt in retests:
        idx = layout.index(rt.id)
        if rt.position <= 6:
            assert layout.index(f"S{rt.position}") < idx
        if rt.position < 6:
            assert idx < layout.index(f"S{rt.position + 1}")
        if rt.position >= 6:
            assert idx > layout.index("S6")


@pytest.mark.parametrize("bad", [-1, 8, 100, 1.5, "3", True])
def test_validate_position_rejects(bad: object) -> None:
    with pytest.raises(InvalidPosition):
        validate_position(bad)


def test_move_only_touches_target_and_is_idempotent() -> None:
    retests = (_retest("a", 0, 0), _retest("b", 7, 1), _retest("c", 3, 2))
    once = move(retests, "b", 3)
    twice = move(once, "b", 3)
    assert once == twice
    positions = {rt.id: rt.position for rt in once}
    assert positions == {"a": 0, "b": 3, "c": 3}
    assert [rt.id for rt in once] == ["a", "b", "c"]


def test_move_rejects_invalid_position_and_unknown_id() -> None:
    retests = (_retest("a", 0, 0),)
    with pytest.raises(InvalidPosition):
        move(retests, "a", 8)
    with pytest.raises(RetestNotFound):
        move(retests, "missing", 2)


def test_step_target_edges() -> None:
    retests = (_retest("first", 0, 0), _retest("last", 7, 1), _retest("mid", 4, 2))
    assert step_target(retests, "first", -1) is None
    assert step_target(retests, "first", +1) == 1
    assert step_target(retests, "last", +1) is None
    assert step_target(retests, "last", -1) == 6
    assert step_target(retests, "mid", -1) == 3


def test_drop_and_step_converge_on_same_order() -> None:
    retests = (_retest("a", 7, 0), _retest("b", 2, 1))
    entries = order_day(_readings(), retests)
    layout = _layout(entries)
    # Dropping right below S4 anchors after session 4.
    target = drop_target(entries, layout.index("S4") + 1)
    assert target == 4
    by_drop = move(retests, "a", target)

    stepped = retests
    for _ in range(3):
        nxt = step_target(stepped, "a", -1)
        assert nxt is not None
        stepped = move(stepped, "a", nxt)
    assert stepped == by_drop
    assert _layout(order_day(_readings(), by_drop)) == _layout(
        order_day(_readings(), stepped)
    )


def test_drop_target_bounds() -> None:
    entries = order_day(_readings(), [_retest("a", 7, 0)])
    assert drop_target(entries, 0) == 0
    assert drop_target(entries, len(entries)) == 7
    assert drop_target(entries, len(entries) + 10) == 7
    assert drop_target([], 3) == 0


def test_sort_retests_is_total() -> None:
    retests = [_retest("b", 1, 0), _retest("a", 1, 0)]
    assert [rt.id for rt in sort_retests(retests)] == ["a", "b"]
