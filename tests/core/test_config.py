from __future__ import annotations

import pytest

from app.core.config import AppEnv, Settings, load_settings

# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "APP_ENV",
        "LOG_LEVEL",
        "ENFORCEMENT_INTERVAL_SECONDS",
        "WARNING_INTERVAL_SECONDS",
        "ENFORCEMENT_STALENESS_MINUTES",
        "CLEANUP_LOOKAHEAD_HOURS",
        "PROGRESS_LEVELS",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.enforcement_interval_seconds == 3600
    assert settings.warning_interval_seconds == 1800
    assert settings.enforcement_staleness_minutes == 60
    assert settings.cleanup_lookahead_hours == 24
    assert settings.progress_levels == ("L1", "L2", "L3")


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("ENFORCEMENT_INTERVAL_SECONDS", "600")
    monkeypatch.setenv("WARNING_INTERVAL_SECONDS", "900")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.enforcement_interval_seconds == 600
    assert settings.warning_interval_seconds == 900


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"


def test_load_settings_parses_levels(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROGRESS_LEVELS", " beginner, Advanced ,,")
    assert load_settings().progress_levels == ("BEGINNER", "ADVANCED")


def test_empty_database_url_means_in_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "  ")
    monkeypatch.delenv("REDIS_URL", raising=False)
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None


# ---- invalid values ----


def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("LOG_LEVEL", "info")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


def test_warning_interval_must_fit_the_one_hour_window(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("WARNING_INTERVAL_SECONDS", "7200")
    with pytest.raises(ValueError, match="WARNING_INTERVAL_SECONDS must be <= 3600"):
        load_settings()


def test_interval_must_be_an_integer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENFORCEMENT_INTERVAL_SECONDS", "hourly")
    with pytest.raises(ValueError, match="ENFORCEMENT_INTERVAL_SECONDS must be an integer"):
        load_settings()


def test_interval_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENFORCEMENT_INTERVAL_SECONDS", "0")
    with pytest.raises(ValueError, match="ENFORCEMENT_INTERVAL_SECONDS must be >= 1"):
        load_settings()


def test_levels_must_not_be_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROGRESS_LEVELS", " , ")
    with pytest.raises(ValueError, match="PROGRESS_LEVELS must name at least one level"):
        load_settings()


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


def test_settings_is_dev_only_for_dev() -> None:
    assert _make_settings("dev").is_dev
    assert not _make_settings("test").is_dev
    assert not _make_settings("prod").is_dev


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
