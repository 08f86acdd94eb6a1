"""Exportación de un rango de fechas a filas planas, CSV, PDF o Excel."""

from __future__ import annotations

import csv
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

import pandas as pd
import structlog
from dateutil.relativedelta import relativedelta

from glucose_tracker.classify import RETEST_CONTEXT, Status, classify, style_for
from glucose_tracker.errors import InvalidRange
from glucose_tracker.model import Reading, Retest
from glucose_tracker.storage import GlucoseStore

logger = structlog.get_logger()

RETEST_LABEL = "Retest"
FILENAME_PREFIX = "glucose-readings"
PRESETS: tuple[str, ...] = ("week", "month", "year")

CSV_HEADER: tuple[str, ...] = (
    "Date",
    "Session/Time",
    "Reading (mg/dL)",
    "Status",
    "Notes",
)


@dataclass(frozen=True)
class ExportRow:
    """One exported measurement."""

    day: date
    session_label: str
    time: datetime
    value: int
    status: Status
    note: str

    @property
    def status_label(self) -> str:
        return style_for(self.status).label

    @property
    def is_retest(self) -> bool:
        return self.session_label == RETEST_LABEL

    @property
    def time_label(self) -> str:
        return format_time(self.time)

    @property
    def sort_key(self) -> tuple[date, datetime]:
        return self.day, self.time


def format_time(value: datetime) -> str:
    """Hora estilo ``3:05 PM``."""
    return value.strftime("%I:%M %p").lstrip("0")


def flatten(readings: Iterable[Reading], retests: Iterable[Retest]) -> list[ExportRow]:
    """Flatten readings (non-null only) and retests into sorted export rows.

    Rows are ordered by date, then by time of record (``updated_at`` for
    readings, ``recorded_at`` for retests).
    """
    rows: list[ExportRow] = []
    for reading in readings:
        if reading.value is None:
            continue
        rows.append(
            ExportRow(
                day=reading.day,
                session_label=reading.session.value,
                time=reading.updated_at,
                value=reading.value,
                status=classify(reading.value, reading.session),
                note=reading.note or "",
            )
        )
    for retest in retests:
        rows.append(
            ExportRow(
                day=retest.day,
                session_label=RETEST_LABEL,
                time=retest.recorded_at,
                value=retest.value,
                status=classify(retest.value, RETEST_CONTEXT),
                note=retest.note or "",
            )
        )
    rows.sort(key=lambda r: r.sort_key)
    return rows


async def export_range(store: GlucoseStore, start: date, end: date) -> list[ExportRow]:
    """Fetch and flatten every measurement with start <= date <= end.

    Raises:
        InvalidRange: If ``start`` is after ``end``.
        FetchFailure: If the store cannot be read.
    """
    if start > end:
        raise InvalidRange(f"Start {start} is after end {end}")
    readings = await store.fetch_readings_range(start, end)
    retests = await store.fetch_retests_range(start, end)
    rows = flatten(readings, retests)
    logger.info("Export rows built", start=str(start), end=str(end), rows=len(rows))
    return rows


def rows_to_frame(rows: Iterable[ExportRow]) -> pd.DataFrame:
    """Tabla base compartida por CSV, PDF y Excel."""
    records = [
        {
            "date": row.day,
            "session": row.session_label,
            "time": row.time,
            "reading": row.value,
            "status": row.status.value,
            "status_label": row.status_label,
            "notes": row.note,
        }
        for row in rows
    ]
    columns = ["date", "session", "time", "reading", "status", "status_label", "notes"]
    if not records:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(records, columns=columns)


def _session_cell(row: ExportRow) -> str:
    if row.is_retest:
        return f"{RETEST_LABEL} @ {row.time_label}"
    return row.session_label


def _csv_frame(rows: Iterable[ExportRow]) -> pd.DataFrame:
    records = [
        (
            row.day.isoformat(),
            _session_cell(row),
            str(row.value),
            row.status_label or "N/A",
            row.note,
        )
        for row in rows
    ]
    return pd.DataFrame.from_records(records, columns=list(CSV_HEADER))


def render_csv(rows: Iterable[ExportRow]) -> str:
    """CSV text: every field quoted, inner quotes doubled."""
    return _csv_frame(rows).to_csv(
        index=False,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )


def write_csv(rows: Iterable[ExportRow], out_path: Path) -> Path:
    """Write the CSV export (UTF-8)."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(render_csv(rows), encoding="utf-8")
    return out_path


def export_filename(start: date, end: date, ext: str) -> str:
    return f"{FILENAME_PREFIX}-{start.isoformat()}-to-{end.isoformat()}.{ext}"


def default_range(today: date) -> tuple[date, date]:
    """Año calendario actual."""
    return date(today.year, 1, 1), date(today.year, 12, 31)


def preset_range(preset: str, today: date) -> tuple[date, date]:
    """Quick ranges: last week, last month, or the current year.

    Raises:
        ValueError: For an unknown preset name.
    """
    if preset == "week":
        return today - relativedelta(days=7), today
    if preset == "month":
        return today - relativedelta(months=1), today
    if preset == "year":
        return default_range(today)
    raise ValueError(f"Unknown preset: {preset}")


def write_export(
    rows: list[ExportRow],
    fmt: str,
    out_dir: Path,
    start: date,
    end: date,
) -> Path:
    """Write ``rows`` in ``fmt`` (csv, pdf or xlsx) under ``out_dir``."""
    out_path = out_dir / export_filename(start, end, fmt)
    if fmt == "csv":
        write_csv(rows, out_path)
    elif fmt == "pdf":
        from glucose_tracker.pdf_writer import write_pdf

        write_pdf(rows, out_path, start, end)
    elif fmt == "xlsx":
        from glucose_tracker.excel_writer import ExcelLayout, write_readings_xlsx

        write_readings_xlsx(rows, out_path, ExcelLayout())
    else:
        raise ValueError(f"Unknown export format: {fmt}")
    logger.info("Export written", path=str(out_path), format=fmt, rows=len(rows))
    return out_path
