"""Punto de entrada: ``python -m glucose_tracker``."""

from __future__ import annotations

from glucose_tracker.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
