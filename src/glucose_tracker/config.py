"""Configuración de la app: defaults, variables de entorno y tabla app_config."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EXPORT_FORMATS: tuple[str, ...] = ("csv", "pdf", "xlsx")


def _default_db() -> Path:
    return Path.home() / ".glucose_tracker" / "glucose.sqlite3"


def _default_export_dir() -> Path:
    return Path.cwd() / "exports"


class EnvSettings(BaseSettings):
    """Settings read from ``GLUCOSE_TRACKER_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GLUCOSE_TRACKER_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    db: Path = Field(default_factory=_default_db, description="SQLite file")
    export_dir: Path = Field(
        default_factory=_default_export_dir, description="Export directory"
    )
    log_level: str = Field(default="INFO", description="Log level name")


@dataclass(frozen=True)
class AppConfig:
    """Resolved application settings."""

    db_path: Path
    export_dir: Path
    export_format: str = "csv"
    log_level: str = "INFO"


def default_config(settings: EnvSettings | None = None) -> AppConfig:
    """Build config from environment variables, falling back to defaults."""
    env = settings or EnvSettings()
    return AppConfig(
        db_path=env.db.expanduser(),
        export_dir=env.export_dir.expanduser(),
        log_level=env.log_level,
    )


def merge_settings(config: AppConfig, stored: Mapping[str, str]) -> AppConfig:
    """Apply values persisted in app_config over ``config``.

    Unknown keys and invalid formats are ignored.
    """
    out = config
    export_dir = stored.get("export_dir", "").strip()
    if export_dir:
        out = replace(out, export_dir=Path(export_dir).expanduser())
    export_format = stored.get("export_format", "").strip().lower()
    if export_format in EXPORT_FORMATS:
        out = replace(out, export_format=export_format)
    return out


def settings_payload(config: AppConfig) -> dict[str, str]:
    """Valores persistibles en app_config."""
    return {
        "export_dir": str(config.export_dir),
        "export_format": config.export_format,
    }
