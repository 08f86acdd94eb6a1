"""Generación de Excel formateado para entrega médica."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from glucose_tracker.classify import Status, style_for
from glucose_tracker.export import ExportRow, rows_to_frame

_DIA_SEMANA: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_HEADER_MAP: dict[str, str] = {
    "weekday": "Day",
    "date": "Date",
    "session": "Session",
    "time": "Time",
    "reading": "Reading (mg/dL)",
    "status_label": "Status",
    "notes": "Notes",
}

_STATUS_HEADER = _HEADER_MAP["status_label"]


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the readings sheet."""

    sheet_name: str = "Glucose readings"


def _weekday_label(i: object) -> str:
    """Convierte índice 0-6 (lunes-domingo) a etiqueta de 3 letras."""
    try:
        if i is None or (isinstance(i, float) and pd.isna(i)):
            return ""
        if isinstance(i, int | float):
            idx = int(i)
            return _DIA_SEMANA[idx] if 0 <= idx < 7 else ""
        return ""
    except (ValueError, TypeError):
        return ""


def _prepare_frame(rows: Sequence[ExportRow]) -> pd.DataFrame:
    """Añade columna Day, quita timezone y deja la hora como HH:MM."""
    df = rows_to_frame(rows)
    if df.empty:
        return df.drop(columns=["status"]).rename(columns=_HEADER_MAP)
    df["weekday"] = pd.to_datetime(df["date"]).dt.weekday.map(_weekday_label)
    df["date"] = pd.to_datetime(df["date"])
    df["time"] = [row.time_label for row in rows]
    df = df.drop(columns=["status"])
    cols = ["weekday"] + [c for c in df.columns if c != "weekday"]
    return df[cols].rename(columns=_HEADER_MAP)


def write_readings_xlsx(
    rows: Sequence[ExportRow], out_path: Path, layout: ExcelLayout
) -> Path:
    """Write a formatted Excel file suitable for printing.

    Args:
        rows: Flattened export rows.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.

    Returns:
        ``out_path``.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)
    export_df = _prepare_frame(rows)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        ws = writer.book[layout.sheet_name]
        _format_sheet(ws, [row.status for row in rows])
    return out_path


def _style_header_row(ws: Any) -> None:
    """Aplica fuente negrita, alineación y borde a la fila de cabecera."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    """Aplica alineación, borde y altura fija a las filas de datos."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = center
            cell.border = border
        ws.row_dimensions[row[0].row].height = 15


def _get_header_col_index(ws: Any) -> dict[str, int]:
    """Devuelve mapa nombre de cabecera -> índice de columna (1-based)."""
    headers = [str(cell.value) for cell in ws[1]]
    return {name: idx + 1 for idx, name in enumerate(headers)}


def _apply_column_widths(ws: Any, col_index: dict[str, int]) -> None:
    """Establece anchos de columna para evitar ###."""
    widths = [
        ("Day", 6),
        ("Date", 12),
        ("Session", 18),
        ("Time", 10),
        ("Reading (mg/dL)", 14),
        ("Status", 12),
        ("Notes", 40),
    ]
    for header, width in widths:
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width


def _apply_number_formats(ws: Any, col_index: dict[str, int]) -> None:
    """Aplica formatos numéricos por cabecera."""
    fmt_map: dict[str, str] = {
        "Date": "dd/mm/yyyy",
        "Reading (mg/dL)": "0",
    }
    for row in ws.iter_rows(min_row=2):
        for header, fmt in fmt_map.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt


def _apply_status_fills(
    ws: Any, col_index: dict[str, int], statuses: Sequence[Status]
) -> None:
    """Pinta la celda de estado con el color de la banda, texto blanco."""
    idx = col_index.get(_STATUS_HEADER)
    if idx is None:
        return
    for offset, status in enumerate(statuses):
        if status is Status.NONE:
            continue
        red, green, blue = style_for(status).rgb
        color = f"FF{red:02X}{green:02X}{blue:02X}"
        cell = ws.cell(row=offset + 2, column=idx)
        cell.fill = PatternFill(fill_type="solid", start_color=color, end_color=color)
        cell.font = Font(bold=True, color="FFFFFFFF")


def _format_sheet(ws: Any, statuses: Sequence[Status] = ()) -> None:
    """Apply borders, widths, number formats and status fills to a worksheet.

    Args:
        ws: openpyxl worksheet.
        statuses: Status of each body row, top to bottom.
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = _get_header_col_index(ws)
    _apply_column_widths(ws, col_index)
    _apply_number_formats(ws, col_index)
    _apply_status_fills(ws, col_index, statuses)
