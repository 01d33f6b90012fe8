"""Logging configuration for the lesson service.

Two output shapes are supported:

  _ContainerFormatter: one human-readable line per record, for local dev
    and for reading `docker logs` by eye.

  _JsonFormatter: one JSON object per line (JSON Lines), for log
    aggregation.  Lesson context (user, course, module, session) and the
    request context injected by RequestContextMiddleware become top-level
    keys, so "every event for session X" is a filter instead of a regex.

    Set LOG_JSON=true to switch.

Engine code attaches lesson context with ``extra=lesson_log_context(...)``
so the same fields appear whichever formatter is active.
"""

from __future__ import annotations

import json
import logging
import sys

from learnx.middleware.request_context import RequestContextFilter


class _ContainerFormatter(logging.Formatter):
    """One line per record for container stdout.

    ``2025-01-01T12:00:00.123+0000 INFO     learnx.x [req-id]  message``
    The bracketed request ID appears only while serving a request.
    Warnings and errors end with ``[filename:lineno]``.
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s%(ctx)s  %(message)s%(loc)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # .NNN goes before the +HHMM offset
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        req_id = getattr(record, "request_id", "-")
        record.ctx = "" if req_id == "-" else f" [{req_id}]"
        record.loc = (
            f"  [{record.filename}:{record.lineno}]"
            if record.levelno >= logging.WARNING
            else ""
        )
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Known context fields are copied from the LogRecord when present; any
    other ``extra`` keys are ignored so the schema stays stable.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "session_id",
        "course_id",
        "module_id",
        "step_index",
        "state",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def lesson_log_context(
    *,
    user_id: str | None = None,
    session_id: str | None = None,
    course_id: str | None = None,
    module_id: str | None = None,
    step_index: int | None = None,
    state: str | None = None,
) -> dict[str, object]:
    """Build the ``extra`` mapping for lesson-scoped log records."""
    fields = {
        "user_id": user_id,
        "session_id": session_id,
        "course_id": course_id,
        "module_id": module_id,
        "step_index": step_index,
        "state": state,
    }
    return {k: v for k, v in fields.items() if v is not None}


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for container environments.

    Args:
        level_name: debug/info/warning/error (unknown names fall back to info)
        json_format: emit JSON lines instead of the single-line text format
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # google-genai logs every request at INFO through httpx
    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "google_genai",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
