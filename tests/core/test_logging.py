from __future__ import annotations

import json
import logging
import sys

import pytest

from learnx.core.logging import (
    _ContainerFormatter,
    _JsonFormatter,
    lesson_log_context,
    setup_logging,
)
from learnx.middleware.request_context import (
    RequestContextFilter,
    learner_id_var,
    request_id_var,
)


def _record(level: int = logging.INFO, msg: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="learnx.test",
        level=level,
        pathname="engine.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ---- setup_logging ----


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_noisy_libraries_stay_at_warning() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("google_genai").level == logging.WARNING

    setup_logging("error")
    assert logging.getLogger("httpx").level == logging.ERROR


def test_setup_logging_selects_formatter() -> None:
    setup_logging("info", json_format=True)
    (handler,) = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)

    setup_logging("info")
    (handler,) = logging.getLogger().handlers
    assert isinstance(handler.formatter, _ContainerFormatter)


# ---- container formatter ----


@pytest.mark.parametrize(
    ("level", "has_location"),
    [(logging.INFO, False), (logging.WARNING, True), (logging.ERROR, True)],
)
def test_location_only_for_warnings_and_up(level: int, has_location: bool) -> None:
    output = _ContainerFormatter().format(_record(level))
    assert "hello" in output
    assert ("[engine.py:42]" in output) is has_location


# ---- JSON formatter ----


def test_json_formatter_emits_lesson_context() -> None:
    extra = lesson_log_context(user_id="u1", session_id="abc", step_index=0)
    line = _JsonFormatter().format(_record(msg="Lesson loading -> presenting", **extra))

    entry = json.loads(line)
    assert entry["message"] == "Lesson loading -> presenting"
    assert entry["level"] == "INFO"
    assert entry["user_id"] == "u1"
    assert entry["session_id"] == "abc"
    assert entry["step_index"] == 0
    assert "course_id" not in entry


def test_json_formatter_ignores_unknown_extras() -> None:
    entry = json.loads(_JsonFormatter().format(_record(password="hunter2")))
    assert "password" not in entry


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(logging.ERROR)
        record.exc_info = sys.exc_info()
    entry = json.loads(_JsonFormatter().format(record))
    assert "RuntimeError: boom" in entry["exception"]


def test_lesson_log_context_drops_missing_fields() -> None:
    assert lesson_log_context(course_id="c1", state=None) == {"course_id": "c1"}


# ---- request context ----


def test_container_line_carries_request_id() -> None:
    output = _ContainerFormatter().format(_record(request_id="req-42"))
    assert "learnx.test [req-42]  hello" in output


def test_filter_copies_request_context_onto_records() -> None:
    req_token = request_id_var.set("req-9")
    learner_token = learner_id_var.set("u7")
    try:
        plain = _record()
        explicit = _record(user_id="u1")
        RequestContextFilter().filter(plain)
        RequestContextFilter().filter(explicit)
    finally:
        learner_id_var.reset(learner_token)
        request_id_var.reset(req_token)

    assert (plain.request_id, plain.user_id) == ("req-9", "u7")
    assert explicit.user_id == "u1"


def test_handler_filter_reaches_child_loggers() -> None:
    setup_logging("info", json_format=True)
    (handler,) = logging.getLogger().handlers
    assert any(isinstance(f, RequestContextFilter) for f in handler.filters)
