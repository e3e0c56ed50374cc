"""Log output shape: text for local runs, JSON lines for aggregation."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from console.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging


def _record(level: int = logging.INFO, msg: str = "hello", *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="console.test",
        level=level,
        pathname="accounts.py",
        lineno=57,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging("info")


# ---- setup_logging ----


@pytest.mark.parametrize(
    ("name", "level"),
    [("debug", logging.DEBUG), ("warning", logging.WARNING), ("bogus", logging.INFO)],
)
def test_setup_logging_sets_root_level(name: str, level: int) -> None:
    setup_logging(name)
    assert logging.getLogger().level == level


@pytest.mark.parametrize("noisy", ["uvicorn", "httpx", "sqlalchemy.engine"])
def test_noisy_libraries_stay_at_warning_or_above(noisy: str) -> None:
    setup_logging("debug")
    assert logging.getLogger(noisy).level == logging.WARNING
    setup_logging("error")
    assert logging.getLogger(noisy).level == logging.ERROR


def test_json_flag_selects_json_formatter() -> None:
    setup_logging("info", json_format=True)
    (handler,) = logging.getLogger().handlers
    assert isinstance(handler.formatter, _JsonFormatter)

    setup_logging("info")
    (handler,) = logging.getLogger().handlers
    assert isinstance(handler.formatter, _ContainerFormatter)


# ---- text format ----


def test_text_format_omits_location_below_warning() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO, "created user"))
    assert "created user" in output
    assert "console.test" in output
    assert "[accounts.py:" not in output


@pytest.mark.parametrize("level", [logging.WARNING, logging.ERROR])
def test_text_format_adds_location_for_problems(level: int) -> None:
    output = _ContainerFormatter().format(_record(level, "root protection"))
    assert "[accounts.py:57]" in output


# ---- JSON format ----


def test_json_line_carries_core_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record(logging.INFO, "user %s", "bob")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "console.test"
    assert parsed["message"] == "user bob"
    assert "timestamp" in parsed


def test_json_line_promotes_request_context() -> None:
    record = _record(
        request_id="req-1",
        method="POST",
        path="/console/users/batch-delete",
        status_code=401,
        target_user_id="4d7c",
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "req-1"
    assert parsed["path"] == "/console/users/batch-delete"
    assert parsed["status_code"] == 401
    assert parsed["target_user_id"] == "4d7c"


def test_json_line_skips_absent_context() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert "user_id" not in parsed
    assert "duration_ms" not in parsed


def test_json_line_includes_traceback() -> None:
    try:
        raise ConnectionError("redis down")
    except ConnectionError:
        record = _record(logging.ERROR, "purge failed")
        record.exc_info = sys.exc_info()
    parsed = json.loads(_JsonFormatter().format(record))
    assert "ConnectionError: redis down" in parsed["exception"]
