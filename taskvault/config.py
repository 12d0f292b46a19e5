from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    database_url: str
    attachments_dir: Path
    log_level: str = "INFO"
    log_dir: str = "logs"
    retention_days: int = 30
    sweep_interval_hours: int = 24


def _resolve_path(value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else PROJECT_ROOT / path


def _default_database_url() -> str:
    return f"sqlite:///{(PROJECT_ROOT / 'data' / 'taskvault.db').as_posix()}"


def load_settings() -> Settings:
    load_env()
    return Settings(
        database_url=os.getenv("DATABASE_URL", "").strip() or _default_database_url(),
        attachments_dir=_resolve_path(os.getenv("ATTACHMENTS_DIR", "data/attachments")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
        retention_days=int(os.getenv("RETENTION_DAYS", "30")),
        sweep_interval_hours=int(os.getenv("SWEEP_INTERVAL_HOURS", "24")),
    )


SETTINGS = load_settings()
