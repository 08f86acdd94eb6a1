from __future__ import annotations

import logging
from pathlib import Path

import pytest

from glucose_tracker.config import (
    AppConfig,
    EnvSettings,
    default_config,
    merge_settings,
    settings_payload,
)
from glucose_tracker.logging_setup import configure_logging


ENV_VARS = (
    "GLUCOSE_TRACKER_DB",
    "GLUCOSE_TRACKER_EXPORT_DIR",
    "GLUCOSE_TRACKER_LOG_LEVEL",
)


def test_default_config_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GLUCOSE_TRACKER_DB", str(tmp_path / "g.sqlite3"))
    monkeypatch.setenv("GLUCOSE_TRACKER_EXPORT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("GLUCOSE_TRACKER_LOG_LEVEL", "DEBUG")
    config = default_config()
    assert config.db_path == tmp_path / "g.sqlite3"
    assert config.export_dir == tmp_path / "out"
    assert config.log_level == "DEBUG"
    assert config.export_format == "csv"


def test_default_config_fallbacks(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GLUCOSE_TRACKER_EXPORT_DIR", "")
    config = default_config()
    assert config.db_path.name == "glucose.sqlite3"
    assert config.export_dir.name == "exports"
    assert config.log_level == "INFO"


def test_default_config_accepts_explicit_settings(tmp_path: Path) -> None:
    settings = EnvSettings(db=tmp_path / "x.sqlite3", log_level="WARNING")
    config = default_config(settings)
    assert config.db_path == tmp_path / "x.sqlite3"
    assert config.log_level == "WARNING"


def test_merge_settings_ignores_invalid_values(tmp_path: Path) -> None:
    base = AppConfig(db_path=tmp_path / "db", export_dir=tmp_path / "out")
    merged = merge_settings(base, {"export_format": "PDF", "export_dir": "/x"})
    assert merged.export_format == "pdf"
    assert merged.export_dir == Path("/x")
    assert merge_settings(base, {"export_format": "docx", "other": "1"}) == base
    assert settings_payload(merged) == {"export_dir": "/x", "export_format": "pdf"}


def test_configure_logging_falls_back_to_info() -> None:
    configure_logging("not-a-level")
    assert logging.getLogger().level == logging.INFO
    configure_logging("warning")
    assert logging.getLogger().level == logging.WARNING
