from __future__ import annotations

from datetime import date, datetime, timedelta
from pathlib import Path

from reportlab.lib.styles import getSampleStyleSheet

from glucose_tracker.export import flatten
from glucose_tracker.model import Retest, local_tz
from glucose_tracker.pdf_writer import legend_block, write_pdf

START = date(2025, 2, 1)


def _retests(count: int) -> list[Retest]:
    base = datetime(2025, 2, 1, 6, 0, tzinfo=local_tz())
    return [
        Retest(
            id=f"t{i}",
            day=START,
            value=40 + i * 10,
            note="<b>&" if i == 0 else None,
            recorded_at=base + timedelta(minutes=i),
            position=7,
        )
        for i in range(count)
    ]


def test_write_pdf_creates_file(tmp_path: Path) -> None:
    rows = flatten([], _retests(6))
    out = write_pdf(
        rows,
        tmp_path / "reports" / "r.pdf",
        START,
        START,
        generated_at=datetime(2025, 2, 2, 9, 0, tzinfo=local_tz()),
    )
    data = out.read_bytes()
    assert data.startswith(b"%PDF")
    assert len(data) > 1000


def test_legend_takes_no_space_when_page_is_full() -> None:
    legend = legend_block(getSampleStyleSheet()["Normal"])
    width, height = legend.wrap(500, 800)
    assert legend.fits
    assert width == 500
    assert height > 0

    assert legend.wrap(500, height - 1) == (0, 0)
    assert not legend.fits


def test_long_report_is_written(tmp_path: Path) -> None:
    out = write_pdf(flatten([], _retests(120)), tmp_path / "long.pdf", START, START)
    data = out.read_bytes()
    assert data.startswith(b"%PDF")
