from __future__ import annotations

import pytest

from glucose_tracker.classify import (
    LEGEND,
    RETEST_CONTEXT,
    STATUS_STYLES,
    Status,
    classify,
    classify_retest,
    style_for,
)
from glucose_tracker.model import SESSIONS, Session

ALL_CONTEXTS = [*SESSIONS, RETEST_CONTEXT]


@pytest.mark.parametrize("context", ALL_CONTEXTS)
def test_none_is_always_none(context: object) -> None:
    assert classify(None, context) is Status.NONE


@pytest.mark.parametrize("context", ALL_CONTEXTS)
def test_universal_bands_ignore_context(context: object) -> None:
    assert classify(0, context) is Status.SEVERE_LOW
    assert classify(54, context) is Status.SEVERE_LOW
    assert classify(55, context) is Status.LOW
    assert classify(69, context) is Status.LOW
    assert classify(200, context) is Status.HIGH
    assert classify(450, context) is Status.HIGH


def test_fasting_bands() -> None:
    assert classify(70, Session.FASTING) is Status.NORMAL
    assert classify(85, Session.FASTING) is Status.NORMAL
    assert classify(99, Session.FASTING) is Status.NORMAL
    assert classify(100, Session.FASTING) is Status.ELEVATED
    assert classify(110, Session.FASTING) is Status.ELEVATED
    assert classify(125, Session.FASTING) is Status.ELEVATED


def test_fasting_126_to_199_falls_back_to_normal() -> None:
    assert classify(126, Session.FASTING) is Status.NORMAL
    assert classify(199, Session.FASTING) is Status.NORMAL


@pytest.mark.parametrize(
    "session",
    [Session.PRE_LUNCH, Session.PRE_DINNER, Session.BEDTIME, Session.OVERNIGHT],
)
def test_pre_meal_class_bands(session: Session) -> None:
    assert classify(70, session) is Status.NORMAL
    assert classify(130, session) is Status.NORMAL
    assert classify(131, session) is Status.ELEVATED
    assert classify(199, session) is Status.ELEVATED


def test_pre_dinner_150_is_elevated() -> None:
    assert classify(150, Session.PRE_DINNER) is Status.ELEVATED


@pytest.mark.parametrize(
    "session", [Session.ONE_HR_POST_LUNCH, Session.TWO_HR_POST_LUNCH]
)
def test_post_meal_bands(session: Session) -> None:
    assert classify(100, session) is Status.NORMAL
    assert classify(139, session) is Status.NORMAL
    assert classify(140, session) is Status.ELEVATED
    assert classify(150, session) is Status.ELEVATED
    assert classify(199, session) is Status.ELEVATED


def test_retest_context_uses_pre_meal_ranges() -> None:
    assert classify_retest(80) is Status.NORMAL
    assert classify_retest(130) is Status.NORMAL
    assert classify_retest(131) is Status.ELEVATED
    assert classify_retest(None) is Status.NONE


def test_style_table_covers_every_status() -> None:
    assert set(STATUS_STYLES) == set(Status)
    labels = [style_for(s).label for s in Status if s is not Status.NONE]
    assert labels == ["Severe Low", "Low", "Normal", "Elevated", "High"]
    assert style_for(Status.NONE).label == ""
    assert style_for(Status.HIGH).bg_color == "bg-red-100"
    assert style_for(Status.NORMAL).border_color == "border-green-400"


def test_legend_matches_band_colours() -> None:
    assert [label for label, _ in LEGEND][0] == "Severe Low (<55)"
    assert len(LEGEND) == 5
    assert LEGEND[4][1] == style_for(Status.HIGH).rgb
