# medtasks/config.py

"""Settings loaded from environment variables (+ optional .env)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# ---------------- ENV ----------------
load_dotenv(override=False)

STORAGE_BACKENDS = ("sql", "object", "fallback")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./medtasks.db"
    object_store_path: Path = Path("./medtasks-objects.json")
    storage_backend: str = "fallback"

    secret_key: Optional[str] = None
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    frontend_origin: Optional[str] = None
    log_level: str = "INFO"
    sql_echo: bool = False


def get_settings() -> Settings:
    backend = os.getenv("STORAGE_BACKEND", "fallback").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise RuntimeError(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}")

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./medtasks.db"),
        object_store_path=Path(os.getenv("OBJECT_STORE_PATH", "./medtasks-objects.json")).expanduser(),
        storage_backend=backend,
        secret_key=os.getenv("SECRET_KEY") or None,
        algorithm=os.getenv("ALGORITHM", "HS256"),
        access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60),
        frontend_origin=os.getenv("FRONTEND_ORIGIN") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        sql_echo=_env_bool("SQL_ECHO", False),
    )
