"""CLI para registrar lecturas de glucosa, retests y exportar rangos."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path

from glucose_tracker.classify import RETEST_CONTEXT, classify, style_for
from glucose_tracker.config import (
    EXPORT_FORMATS,
    AppConfig,
    default_config,
    merge_settings,
    settings_payload,
)
from glucose_tracker.day import DayAggregate, DayTracker
from glucose_tracker.errors import GlucoseTrackerError
from glucose_tracker.export import (
    PRESETS,
    default_range,
    export_range,
    format_time,
    preset_range,
    write_export,
)
from glucose_tracker.logging_setup import configure_logging
from glucose_tracker.model import (
    DEFAULT_RETEST_POSITION,
    Reading,
    Session,
    local_tz,
    now,
)
from glucose_tracker.storage import SQLiteStore


def _iso_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date (YYYY-MM-DD): {raw}") from exc


def _session(raw: str) -> Session:
    try:
        return Session.parse(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _clock(raw: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(raw.strip(), "%H:%M")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid time (HH:MM): {raw}") from exc
    return parsed.hour, parsed.minute


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every subcommand."""
    parser = argparse.ArgumentParser(
        prog="glucose-tracker",
        description="Registro diario de glucosa: 7 sesiones, retests y exportación.",
    )
    parser.add_argument("--db", help="Ruta a la base SQLite (default: config).")
    parser.add_argument("--log-level", help="Nivel de log (default: INFO).")
    sub = parser.add_subparsers(dest="command", required=True)

    day_p = sub.add_parser("day", help="Mostrar el día ordenado.")
    day_p.add_argument("date", nargs="?", type=_iso_date, help="YYYY-MM-DD (hoy).")

    save_p = sub.add_parser("save", help="Guardar la lectura de una sesión.")
    save_p.add_argument("date", type=_iso_date)
    save_p.add_argument("session", type=_session, help="Nombre o número 1-7.")
    save_p.add_argument("value", nargs="?", type=int, help="mg/dL; vacío borra.")
    save_p.add_argument("--note", help="Nota ('' la borra).")

    retest_p = sub.add_parser("retest", help="Operaciones sobre retests.")
    rsub = retest_p.add_subparsers(dest="action", required=True)

    add_p = rsub.add_parser("add", help="Agregar un retest.")
    add_p.add_argument("date", type=_iso_date)
    add_p.add_argument("value", type=int)
    add_p.add_argument("--note")
    add_p.add_argument(
        "--position",
        type=int,
        default=DEFAULT_RETEST_POSITION,
        help="Sesión 0-6 tras la que se muestra, 7 = fin del día.",
    )

    move_p = rsub.add_parser("move", help="Mover un retest a una posición.")
    move_p.add_argument("date", type=_iso_date)
    move_p.add_argument("id")
    move_p.add_argument("position", type=int)

    for name, help_text in (("up", "Subir un slot."), ("down", "Bajar un slot.")):
        step_p = rsub.add_parser(name, help=help_text)
        step_p.add_argument("date", type=_iso_date)
        step_p.add_argument("id")

    note_p = rsub.add_parser("note", help="Cambiar la nota de un retest.")
    note_p.add_argument("date", type=_iso_date)
    note_p.add_argument("id")
    note_p.add_argument("text", nargs="?", default=None)

    time_p = rsub.add_parser("time", help="Cambiar la hora de extracción.")
    time_p.add_argument("date", type=_iso_date)
    time_p.add_argument("id")
    time_p.add_argument("clock", type=_clock, help="HH:MM")

    del_p = rsub.add_parser("delete", help="Borrar un retest.")
    del_p.add_argument("date", type=_iso_date)
    del_p.add_argument("id")
    del_p.add_argument("--yes", action="store_true", help="Confirmar el borrado.")

    exp_p = sub.add_parser("export", help="Exportar un rango a CSV, PDF o Excel.")
    exp_p.add_argument("--start", type=_iso_date)
    exp_p.add_argument("--end", type=_iso_date)
    exp_p.add_argument("--preset", choices=PRESETS)
    exp_p.add_argument("--format", dest="fmt", choices=EXPORT_FORMATS)
    exp_p.add_argument("--out-dir", help="Directorio de salida.")

    cfg_p = sub.add_parser("config", help="Ver o guardar configuración.")
    cfg_p.add_argument("--export-dir")
    cfg_p.add_argument("--export-format", choices=EXPORT_FORMATS)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    return build_parser().parse_args(argv)


def _status_label(value: int | None, reading: Reading | None) -> str:
    context = reading.session if reading is not None else RETEST_CONTEXT
    return style_for(classify(value, context)).label


def format_day(agg: DayAggregate) -> list[str]:
    """Render the ordered day as text lines."""
    lines = [f"{agg.day:%A, %B} {agg.day.day}, {agg.day.year}"]
    for entry in agg.entries():
        item = entry.item
        if isinstance(item, Reading):
            value = "--" if item.value is None else str(item.value)
            label = f"{item.session.index + 1}. {item.session.value}"
            status = _status_label(item.value, item)
            ident = ""
        else:
            value = str(item.value)
            label = f"   Retest @ {format_time(item.recorded_at)} [pos {item.position}]"
            status = _status_label(item.value, None)
            ident = f"  ({item.id})"
        note = f"  {item.note}" if item.note else ""
        lines.append(f"{label:<36} {value:>4}  {status:<10}{note}{ident}")
    return lines


async def _load_day(store: SQLiteStore, day: date) -> DayTracker:
    tracker = DayTracker(store, day)
    await tracker.load()
    return tracker


def _write_result(tracker: DayTracker, failures_before: int, ok_message: str) -> int:
    if tracker.write_failures > failures_before:
        print(
            "Error: no se pudo guardar; el día se recargó desde la base.",
            file=sys.stderr,
        )
        return 1
    print(ok_message)
    return 0


async def _cmd_save(store: SQLiteStore, ns: argparse.Namespace) -> int:
    tracker = await _load_day(store, ns.date)
    session: Session = ns.session
    current = tracker.aggregate.reading_for(session)
    note = current.note if ns.note is None else ns.note
    before = tracker.write_failures
    saved = await tracker.save_reading(session, ns.value, note)
    if not saved and tracker.write_failures == before:
        print("Sin cambios.")
        return 0
    return _write_result(tracker, before, f"OK: {session.value} guardada.")


async def _cmd_retest(store: SQLiteStore, ns: argparse.Namespace) -> int:
    tracker = await _load_day(store, ns.date)
    before = tracker.write_failures
    if ns.action == "add":
        retest = await tracker.add_retest(ns.value, ns.note, ns.position)
        message = f"OK: retest {retest.id} agregado." if retest else ""
        return _write_result(tracker, before, message)
    if ns.action == "move":
        await tracker.move_retest(ns.id, ns.position)
        return _write_result(tracker, before, f"OK: retest en posición {ns.position}.")
    if ns.action in ("up", "down"):
        step = (
            tracker.step_retest_up if ns.action == "up" else tracker.step_retest_down
        )
        if not await step(ns.id):
            print("Sin cambios: el retest ya está en el extremo.")
            return 0
        position = tracker.aggregate.retest(ns.id).position
        return _write_result(tracker, before, f"OK: retest en posición {position}.")
    if ns.action == "note":
        await tracker.update_retest_note(ns.id, ns.text)
        return _write_result(tracker, before, "OK: nota actualizada.")
    if ns.action == "time":
        hour, minute = ns.clock
        when = datetime(
            ns.date.year, ns.date.month, ns.date.day, hour, minute, tzinfo=local_tz()
        )
        await tracker.update_retest_recorded_at(ns.id, when)
        return _write_result(tracker, before, f"OK: hora {format_time(when)}.")
    if not ns.yes:
        print("Borrado cancelado: confirmar con --yes.")
        return 1
    await tracker.delete_retest(ns.id)
    return _write_result(tracker, before, "OK: retest borrado.")


async def _cmd_export(
    store: SQLiteStore, config: AppConfig, ns: argparse.Namespace
) -> int:
    today = now().date()
    start, end = preset_range(ns.preset, today) if ns.preset else default_range(today)
    start = ns.start or start
    end = ns.end or end
    rows = await export_range(store, start, end)
    out_dir = Path(ns.out_dir).expanduser() if ns.out_dir else config.export_dir
    out_path = write_export(rows, ns.fmt or config.export_format, out_dir, start, end)
    print(f"OK: {len(rows)} filas")
    print(f"OK: Output: {out_path}")
    return 0


async def _cmd_config(
    store: SQLiteStore, config: AppConfig, ns: argparse.Namespace
) -> int:
    updated = config
    if ns.export_dir:
        updated = replace(updated, export_dir=Path(ns.export_dir).expanduser())
    if ns.export_format:
        updated = replace(updated, export_format=ns.export_format)
    if updated != config:
        await store.save_settings(settings_payload(updated))
        print("Configuracion guardada.")
    print(f"db_path: {updated.db_path}")
    print(f"export_dir: {updated.export_dir}")
    print(f"export_format: {updated.export_format}")
    return 0


async def run(ns: argparse.Namespace, config: AppConfig) -> int:
    """Execute a parsed command against the configured store."""
    store = SQLiteStore(config.db_path)
    config = merge_settings(config, await store.load_settings())

    if ns.command == "day":
        tracker = await _load_day(store, ns.date or now().date())
        print("\n".join(format_day(tracker.aggregate)))
        return 0
    if ns.command == "save":
        return await _cmd_save(store, ns)
    if ns.command == "retest":
        return await _cmd_retest(store, ns)
    if ns.command == "export":
        return await _cmd_export(store, config, ns)
    return await _cmd_config(store, config, ns)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 on success).
    """
    ns = parse_args(argv)
    config = default_config()
    if ns.db:
        config = replace(config, db_path=Path(ns.db).expanduser())
    if ns.log_level:
        config = replace(config, log_level=ns.log_level)
    configure_logging(config.log_level)

    try:
        return asyncio.run(run(ns, config))
    except GlucoseTrackerError as exc:
        print(f"Error ({type(exc).__name__}): {exc}", file=sys.stderr)
        return 1
