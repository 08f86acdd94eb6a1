"""Modelos tipados para lecturas programadas y retests de glucosa."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from dateutil import tz

_LOCAL_TZ = tz.tzlocal()

PLACEHOLDER_PREFIX = "placeholder-"

MIN_POSITION = 0
END_OF_DAY_POSITION = 7
MAX_POSITION = END_OF_DAY_POSITION
# New retests land after the last session unless the caller picks a slot.
DEFAULT_RETEST_POSITION = END_OF_DAY_POSITION


class Session(Enum):
    """The seven scheduled measurement slots, in timeline order."""

    FASTING = "Fasting (Morning)"
    PRE_LUNCH = "Pre-Lunch"
    ONE_HR_POST_LUNCH = "1-Hr Post-Lunch"
    TWO_HR_POST_LUNCH = "2-Hr Post-Lunch"
    PRE_DINNER = "Pre-Dinner"
    BEDTIME = "Bedtime"
    OVERNIGHT = "Overnight"

    @property
    def label(self) -> str:
        return self.value

    @property
    def index(self) -> int:
        """Position of the session in the day (0-6)."""
        return SESSIONS.index(self)

    @classmethod
    def parse(cls, raw: str) -> Session:
        """Resolve a session from its label, enum name or 1-based number.

        Raises:
            ValueError: If nothing matches.
        """
        text = raw.strip()
        if text.isdigit():
            idx = int(text) - 1
            if 0 <= idx < len(SESSIONS):
                return SESSIONS[idx]
            raise ValueError(f"Session number out of range: {raw}")
        folded = text.casefold()
        for session in cls:
            if folded in (session.value.casefold(), session.name.casefold()):
                return session
        raise ValueError(f"Unknown session: {raw}")


SESSIONS: tuple[Session, ...] = tuple(Session)


def now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now(tz=_LOCAL_TZ)


def local_tz() -> tz.tzlocal:
    return _LOCAL_TZ


@dataclass(frozen=True)
class Reading:
    """One scheduled measurement for a (day, session) pair."""

    id: str
    day: date
    session: Session
    value: int | None
    note: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class Retest:
    """One ad-hoc measurement anchored after a session slot."""

    id: str
    day: date
    value: int
    note: str | None
    recorded_at: datetime
    position: int


def placeholder_reading(day: date, session: Session, when: datetime) -> Reading:
    """Reading sin guardar para un slot vacío."""
    return Reading(
        id=f"{PLACEHOLDER_PREFIX}{session.name.lower()}",
        day=day,
        session=session,
        value=None,
        note=None,
        created_at=when,
        updated_at=when,
    )
