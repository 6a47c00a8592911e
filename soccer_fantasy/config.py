"""
Runtime settings read from the environment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


@dataclass(frozen=True)
class Settings:
    db_path: Path | None
    share_base_url: str
    cors_origins: tuple[str, ...]
    substitution_cap: int
    code_attempts: int
    first_gameweek_window_days: int
    log_level: str


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def get_settings() -> Settings:
    """Read settings fresh from the environment on each call."""
    db_path = os.environ.get("FANTASY_DB_PATH")
    origins = os.environ.get("FANTASY_CORS_ORIGINS")
    return Settings(
        db_path=Path(db_path) if db_path else None,
        share_base_url=os.environ.get(
            "FANTASY_SHARE_BASE_URL", "https://soccer-fantasy-game.vercel.app"
        ).rstrip("/"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else DEFAULT_CORS_ORIGINS,
        substitution_cap=_int_env("FANTASY_SUBSTITUTION_CAP", 2),
        code_attempts=_int_env("FANTASY_CODE_ATTEMPTS", 10),
        first_gameweek_window_days=_int_env("FANTASY_FIRST_GAMEWEEK_WINDOW_DAYS", 7),
        log_level=os.environ.get("FANTASY_LOG_LEVEL", "INFO").upper(),
    )
