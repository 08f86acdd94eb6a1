"""Reporte PDF de glucosa con tabla coloreada por estado y leyenda."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    Flowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from glucose_tracker.classify import LEGEND, style_for
from glucose_tracker.export import ExportRow, format_time
from glucose_tracker.model import now

TITLE = "Blood Glucose Report"
TABLE_HEADER = ("Date", "Session", "Time", "Reading", "Status", "Notes")
STATUS_COL = 4

_HEADER_FILL = colors.Color(59 / 255, 130 / 255, 246 / 255)
_ALT_ROW_FILL = colors.Color(248 / 255, 250 / 255, 252 / 255)
_COL_WIDTHS = (22 * mm, 32 * mm, 20 * mm, 18 * mm, 22 * mm, 68 * mm)


def _rgb(color: tuple[int, int, int]) -> colors.Color:
    red, green, blue = color
    return colors.Color(red / 255, green / 255, blue / 255)


def _long_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _period_label(start: date, end: date) -> str:
    return f"Period: {_long_date(start)} - {_long_date(end)}"


def _table(rows: Sequence[ExportRow], note_style: ParagraphStyle) -> Table:
    data: list[list[object]] = [list(TABLE_HEADER)]
    for row in rows:
        data.append(
            [
                f"{row.day:%b} {row.day.day}",
                row.session_label,
                row.time_label,
                str(row.value),
                row.status_label,
                Paragraph(escape(row.note), note_style) if row.note else "",
            ]
        )

    commands: list[tuple[object, ...]] = [
        ("BACKGROUND", (0, 0), (-1, 0), _HEADER_FILL),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (3, 1), (4, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
    ]
    for idx, row in enumerate(rows, start=1):
        if idx % 2 == 0:
            commands.append(("BACKGROUND", (0, idx), (-1, idx), _ALT_ROW_FILL))
        cell = (STATUS_COL, idx)
        commands.extend(
            [
                ("BACKGROUND", cell, cell, _rgb(row_fill(row))),
                ("TEXTCOLOR", cell, cell, colors.white),
                ("FONTNAME", cell, cell, "Helvetica-Bold"),
            ]
        )

    table = Table(data, colWidths=list(_COL_WIDTHS), repeatRows=1)
    table.setStyle(TableStyle(commands))
    return table


def row_fill(row: ExportRow) -> tuple[int, int, int]:
    """Status colour used for the status cell."""
    return style_for(row.status).rgb


def _legend(label_style: ParagraphStyle) -> Table:
    cells: list[object] = []
    commands: list[tuple[object, ...]] = [("VALIGN", (0, 0), (-1, -1), "MIDDLE")]
    for idx, (label, color) in enumerate(LEGEND):
        swatch_col = idx * 2
        cells.extend(["", Paragraph(escape(label), label_style)])
        commands.append(
            ("BACKGROUND", (swatch_col, 0), (swatch_col, 0), _rgb(color))
        )
    widths = [8 * mm, 27 * mm] * len(LEGEND)
    table = Table([cells], colWidths=widths, rowHeights=[5 * mm], hAlign="LEFT")
    table.setStyle(TableStyle(commands))
    return table


class LegendIfRoom(Flowable):
    """Legend block drawn below the table only if it fits on that same page.

    When the page is too full it takes no space and draws nothing; the
    legend is never pushed to a page of its own.
    """

    def __init__(self, parts: Sequence[Flowable]) -> None:
        Flowable.__init__(self)
        self.parts = list(parts)
        self.fits = False
        self._sizes: list[tuple[float, float]] = []

    def wrap(self, availWidth: float, availHeight: float) -> tuple[float, float]:
        self._sizes = [part.wrap(availWidth, availHeight) for part in self.parts]
        needed = sum(height for _, height in self._sizes)
        self.fits = needed <= availHeight
        self.width = availWidth if self.fits else 0
        self.height = needed if self.fits else 0
        return self.width, self.height

    def draw(self) -> None:
        if not self.fits:
            return
        y = self.height
        for part, (_, height) in zip(self.parts, self._sizes):
            y -= height
            part.drawOn(self.canv, 0, y)


def legend_block(label_style: ParagraphStyle) -> LegendIfRoom:
    return LegendIfRoom(
        [
            Spacer(1, 8 * mm),
            Paragraph("Legend:", label_style),
            Spacer(1, 2 * mm),
            _legend(label_style),
        ]
    )


def write_pdf(
    rows: Sequence[ExportRow],
    out_path: Path,
    start: date,
    end: date,
    *,
    generated_at: datetime | None = None,
) -> Path:
    """Write the PDF report for ``rows``.

    Args:
        rows: Flattened export rows, already sorted.
        out_path: Destination file.
        start: First day of the exported range.
        end: Last day of the exported range.
        generated_at: Timestamp printed in the header (defaults to now).

    Returns:
        ``out_path``.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)
    generated = generated_at or now()
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle", parent=styles["Title"], fontSize=20, alignment=0
    )
    meta_style = ParagraphStyle(
        "ReportMeta", parent=styles["Normal"], fontSize=12, textColor=colors.gray
    )
    small_style = ParagraphStyle(
        "ReportSmall", parent=styles["Normal"], fontSize=10, textColor=colors.gray
    )
    note_style = ParagraphStyle("ReportNote", parent=styles["Normal"], fontSize=9)
    legend_style = ParagraphStyle(
        "ReportLegend", parent=styles["Normal"], fontSize=10, textColor=colors.darkgrey
    )

    story: list[object] = [
        Paragraph(TITLE, title_style),
        Paragraph(_period_label(start, end), meta_style),
        Paragraph(
            f"Generated: {_long_date(generated)} {format_time(generated)}",
            small_style,
        ),
        Spacer(1, 6 * mm),
        _table(rows, note_style),
        legend_block(legend_style),
    ]

    doc = SimpleDocTemplate(
        str(out_path),
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title=TITLE,
    )
    doc.build(story)
    return out_path
