"""Clasificación de lecturas de glucosa en bandas clínicas."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from glucose_tracker.model import Session

SEVERE_LOW_BELOW = 55
LOW_BELOW = 70
HIGH_FROM = 200


class Status(Enum):
    """Clinical band of a reading."""

    NONE = "none"
    SEVERE_LOW = "severe-low"
    LOW = "low"
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH = "high"


class _RetestContext:
    """Generic context used for retests (not tied to a session)."""

    _instance: _RetestContext | None = None

    def __new__(cls) -> _RetestContext:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "RETEST_CONTEXT"


RETEST_CONTEXT: Final = _RetestContext()

Context = Session | _RetestContext

_FASTING = frozenset({Session.FASTING})
_POST_MEAL = frozenset({Session.ONE_HR_POST_LUNCH, Session.TWO_HR_POST_LUNCH})


def classify(value: float | None, context: Context) -> Status:
    """Map a glucose value (mg/dL) to its status band.

    Args:
        value: Reading in mg/dL, or None when not recorded.
        context: Session of a scheduled reading, or RETEST_CONTEXT.

    Returns:
        The status band.
    """
    if value is None:
        return Status.NONE

    if value < SEVERE_LOW_BELOW:
        return Status.SEVERE_LOW
    if value < LOW_BELOW:
        return Status.LOW
    if value >= HIGH_FROM:
        return Status.HIGH

    if context in _FASTING:
        if value <= 99:
            return Status.NORMAL
        if value <= 125:
            return Status.ELEVATED
        # 126-199 en ayunas cae al default.
        return Status.NORMAL

    if context in _POST_MEAL:
        if value < 140:
            return Status.NORMAL
        return Status.ELEVATED

    # Pre-Lunch, Pre-Dinner, Bedtime, Overnight y retests.
    if value <= 130:
        return Status.NORMAL
    return Status.ELEVATED


def classify_retest(value: float | None) -> Status:
    return classify(value, RETEST_CONTEXT)


@dataclass(frozen=True)
class StatusStyle:
    """Display record for one status band."""

    status: Status
    label: str
    bg_color: str
    text_color: str
    border_color: str
    rgb: tuple[int, int, int]


STATUS_STYLES: Final[dict[Status, StatusStyle]] = {
    Status.SEVERE_LOW: StatusStyle(
        Status.SEVERE_LOW,
        "Severe Low",
        "bg-blue-100",
        "text-blue-800",
        "border-blue-400",
        (59, 130, 246),
    ),
    Status.LOW: StatusStyle(
        Status.LOW,
        "Low",
        "bg-orange-100",
        "text-orange-800",
        "border-orange-400",
        (251, 146, 60),
    ),
    Status.NORMAL: StatusStyle(
        Status.NORMAL,
        "Normal",
        "bg-green-100",
        "text-green-800",
        "border-green-400",
        (34, 197, 94),
    ),
    Status.ELEVATED: StatusStyle(
        Status.ELEVATED,
        "Elevated",
        "bg-yellow-100",
        "text-yellow-800",
        "border-yellow-400",
        (250, 204, 21),
    ),
    Status.HIGH: StatusStyle(
        Status.HIGH,
        "High",
        "bg-red-100",
        "text-red-800",
        "border-red-400",
        (239, 68, 68),
    ),
    Status.NONE: StatusStyle(
        Status.NONE,
        "",
        "bg-gray-50",
        "text-gray-600",
        "border-gray-200",
        (156, 163, 175),
    ),
}

_missing = set(Status) - set(STATUS_STYLES)
if _missing:
    _names = ", ".join(sorted(s.value for s in _missing))
    raise RuntimeError(f"STATUS_STYLES missing entries for: {_names}")
del _missing

LEGEND: Final[tuple[tuple[str, tuple[int, int, int]], ...]] = (
    ("Severe Low (<55)", STATUS_STYLES[Status.SEVERE_LOW].rgb),
    ("Low (55-69)", STATUS_STYLES[Status.LOW].rgb),
    ("Normal", STATUS_STYLES[Status.NORMAL].rgb),
    ("Elevated", STATUS_STYLES[Status.ELEVATED].rgb),
    ("High (≥200)", STATUS_STYLES[Status.HIGH].rgb),
)


def style_for(status: Status) -> StatusStyle:
    """Return the display record for a status."""
    return STATUS_STYLES[status]
