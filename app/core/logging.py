"""Logging setup shared by the API and the worker.

Both processes write to stdout.  ``LOG_JSON`` picks the format:

  off: one readable line per record; WARNING and above carry the
       source location, and job context is appended as ``key=value``.
  on:  one JSON object per line, job context as top-level keys, so runs
       can be filtered by ``job``, ``run_id`` or ``timeline_id``.

Context travels on the record through ``extra=``; see
``app.services.timeline_runs``.
"""

from __future__ import annotations

import json
import logging
import sys

# Attributes the job runners attach through ``extra=``.
CONTEXT_FIELDS = ("job", "run_id", "timeline_id", "student_id", "duration_ms")

_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# Loggers that stay at WARNING even when the service runs at DEBUG.
_NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpx", "sqlalchemy.engine")


def _context(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class _ContainerFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s  %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            line += "  " + " ".join(f"{k}={v}" for k, v in context.items())
        if record.levelno >= logging.WARNING:
            location = f"  [{record.filename}:{record.lineno}]"
            head, sep, trace = line.partition("\n")
            line = head + location + sep + trace
        return line


class _JsonFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(datefmt=_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Replace the root handlers with a single stdout handler.

    Unknown level names fall back to INFO.
    """
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
