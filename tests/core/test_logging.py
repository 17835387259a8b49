from __future__ import annotations

import json
import logging

from app.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging


def _record(level: int = logging.INFO, msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=level,
        pathname="svc.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_sql_echo_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("uvicorn").level == logging.WARNING


def test_setup_logging_selects_json_formatter() -> None:
    setup_logging("info", json_format=True)
    [handler] = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)
    setup_logging("info")


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record())
    assert "hello" in output
    assert "[svc.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.WARNING, "bad thing"))
    assert "[svc.py:42]" in output


def test_json_formatter_emits_job_context() -> None:
    record = _record(
        msg="Enforcement run finished",
        job="timeline_enforcement",
        run_id="abc123",
        timeline_id="t-1",
        duration_ms=12.5,
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["level"] == "INFO"
    assert parsed["message"] == "Enforcement run finished"
    assert parsed["job"] == "timeline_enforcement"
    assert parsed["run_id"] == "abc123"
    assert parsed["timeline_id"] == "t-1"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_omits_missing_context() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert "job" not in parsed
    assert "timeline_id" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    import sys

    try:
        raise ValueError("test error")
    except ValueError:
        record = _record(logging.ERROR, "Timeline enforcement failed")
        record.exc_info = sys.exc_info()

    parsed = json.loads(_JsonFormatter().format(record))
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_appends_job_context() -> None:
    output = _ContainerFormatter().format(_record(job="timeline_warnings", run_id="r1"))
    assert output.endswith("job=timeline_warnings run_id=r1")
