# runtime settings, read from the environment once and cached
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Literal, Optional

StatusPolicy = Literal["strict", "permissive"]


@dataclass(frozen=True)
class Settings:
    """
    Process-wide settings.

    Fields:
      - db_path: SQLite file backing the local store
      - admin_prefix: route prefix of the back-office; visits under it are never recorded
      - status_policy: "strict" enforces the order/quote transition graph,
        "permissive" lets an admin overwrite any status with any other
      - visitor_id_file: where the client-side visitor identifier is persisted
      - admin_session_hours: lifetime of an admin session before it must be re-established
      - recent_visits: how many visits the dashboard lists
      - log_level: name of the logging level
    """

    db_path: str = "data/commerce.sqlite"
    admin_prefix: str = "/admin"
    status_policy: StatusPolicy = "strict"
    visitor_id_file: str = "data/visitor_id"
    admin_session_hours: int = 8
    recent_visits: int = 10
    log_level: str = "INFO"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> Settings:
    """Build Settings from COMMERCE_* environment variables."""
    policy = os.getenv("COMMERCE_STATUS_POLICY", "strict").strip().lower()
    if policy not in ("strict", "permissive"):
        raise ValueError(
            f"COMMERCE_STATUS_POLICY must be 'strict' or 'permissive', got {policy!r}"
        )
    log_level = "DEBUG" if os.getenv("DEBUG") else os.getenv("LOG_LEVEL", "INFO")
    return Settings(
        db_path=os.getenv("COMMERCE_DB_PATH", Settings.db_path),
        admin_prefix=os.getenv("COMMERCE_ADMIN_PREFIX", Settings.admin_prefix),
        status_policy=policy,  # type: ignore[arg-type]
        visitor_id_file=os.getenv("COMMERCE_VISITOR_ID_FILE", Settings.visitor_id_file),
        admin_session_hours=_int_env(
            "COMMERCE_ADMIN_SESSION_HOURS", Settings.admin_session_hours
        ),
        recent_visits=_int_env("COMMERCE_RECENT_VISITS", Settings.recent_visits),
        log_level=log_level.upper(),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def override_settings(**changes) -> Settings:
    """Replace selected fields of the cached settings. Mostly for tests."""
    global _settings
    _settings = replace(get_settings(), **changes)
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
