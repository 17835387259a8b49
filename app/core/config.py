"""Environment-driven settings, loaded once at import as ``SETTINGS``.

Invalid values raise ``ValueError`` at startup rather than surfacing
later as odd scheduling behaviour.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")

# A warning class only fires inside a one-hour window before its offset.
MAX_WARNING_INTERVAL_SECONDS = 3600


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in choices:
        raise ValueError(f"{name} must be {'|'.join(choices)} (got {value!r})")
    return value


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _env_list(name: str, default: str) -> tuple[str, ...]:
    return tuple(
        part.strip().upper() for part in _env(name, default).split(",") if part.strip()
    )


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    enforcement_interval_seconds: int = 3600
    warning_interval_seconds: int = 1800
    enforcement_staleness_minutes: int = 60
    cleanup_lookahead_hours: int = 24
    progress_levels: tuple[str, ...] = ("L1", "L2", "L3")

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


def load_settings() -> Settings:
    warning_interval = _env_int("WARNING_INTERVAL_SECONDS", 1800, minimum=1)
    if warning_interval > MAX_WARNING_INTERVAL_SECONDS:
        raise ValueError(
            f"WARNING_INTERVAL_SECONDS must be <= {MAX_WARNING_INTERVAL_SECONDS}"
            f" (got {warning_interval})"
        )

    levels = _env_list("PROGRESS_LEVELS", "L1,L2,L3")
    if not levels:
        raise ValueError("PROGRESS_LEVELS must name at least one level")

    return Settings(  # type: ignore[arg-type]
        app_env=_env_choice("APP_ENV", "dev", _APP_ENVS),
        log_level=_env_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_env("LOG_JSON", "false").lower() in ("1", "true", "yes"),
        port=_env_int("PORT", 8000, minimum=1),
        database_url=_env("DATABASE_URL") or None,
        redis_url=_env("REDIS_URL") or None,
        enforcement_interval_seconds=_env_int(
            "ENFORCEMENT_INTERVAL_SECONDS", 3600, minimum=1
        ),
        warning_interval_seconds=warning_interval,
        enforcement_staleness_minutes=_env_int("ENFORCEMENT_STALENESS_MINUTES", 60),
        cleanup_lookahead_hours=_env_int("CLEANUP_LOOKAHEAD_HOURS", 24),
        progress_levels=levels,
    )


SETTINGS = load_settings()
