from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import os
import sys

from shopledger.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    db_path: Path
    logs_dir: Path
    webhook_url: Optional[str] = None
    db_timeout: float = 30.0
    page_size: int = 20
    log_level: int = logging.INFO


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "ShopLedger") -> AppPaths:
    override = os.environ.get("SHOPLEDGER_HOME", "").strip()
    if override:
        base = Path(override)
    elif sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "shop.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def _env_number(name: str, default, cast):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number. Received: {raw!r}") from exc
    if value <= 0:
        raise ValidationError(f"{name} must be > 0. Received: {raw!r}")
    return value


def load_settings(paths: AppPaths | None = None) -> Settings:
    paths = paths or get_app_paths()
    db_override = os.environ.get("SHOPLEDGER_DB_PATH", "").strip()
    level_name = os.environ.get("SHOPLEDGER_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValidationError(f"SHOPLEDGER_LOG_LEVEL is not a logging level: {level_name!r}")

    return Settings(
        db_path=Path(db_override) if db_override else paths.db_path,
        logs_dir=paths.logs_dir,
        webhook_url=os.environ.get("SHOPLEDGER_WEBHOOK_URL", "").strip() or None,
        db_timeout=_env_number("SHOPLEDGER_DB_TIMEOUT", 30.0, float),
        page_size=_env_number("SHOPLEDGER_PAGE_SIZE", 20, int),
        log_level=level,
    )
