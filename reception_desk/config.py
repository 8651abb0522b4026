"""Configuration helpers for the reception desk service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_HIDE_AFTER_SECONDS = 40
STORAGE_BACKENDS = ("memory", "sqlite")


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    api_key: str
    database_path: Path
    storage_backend: str = "sqlite"
    hide_after_seconds: int = DEFAULT_HIDE_AFTER_SECONDS
    employees_path: Optional[Path] = None
    whatsapp_api_url: Optional[str] = None
    whatsapp_api_token: Optional[str] = None
    log_level: str = "info"


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    api_key = os.getenv("API_KEY")
    if not api_key:
        raise RuntimeError("API_KEY must be configured")

    storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise RuntimeError(f"STORAGE_BACKEND must be one of: {', '.join(STORAGE_BACKENDS)}")

    raw_window = os.getenv("HIDE_AFTER_SECONDS", str(DEFAULT_HIDE_AFTER_SECONDS))
    try:
        hide_after_seconds = int(raw_window)
    except ValueError as exc:
        raise RuntimeError("HIDE_AFTER_SECONDS must be an integer") from exc
    if hide_after_seconds <= 0:
        raise RuntimeError("HIDE_AFTER_SECONDS must be positive")

    employees_path = Path(os.getenv("EMPLOYEES_PATH", "employees.csv")).expanduser()

    return Settings(
        api_key=api_key,
        database_path=Path(os.getenv("DATABASE_PATH", "reception_desk.db")).expanduser(),
        storage_backend=storage_backend,
        hide_after_seconds=hide_after_seconds,
        employees_path=employees_path,
        whatsapp_api_url=os.getenv("WHATSAPP_API_URL") or None,
        whatsapp_api_token=os.getenv("WHATSAPP_API_TOKEN") or None,
        log_level=os.getenv("LOG_LEVEL", "info"),
    )


__all__ = ["Settings", "load_settings", "DEFAULT_HIDE_AFTER_SECONDS"]
