from __future__ import annotations

import logging

from registry.core.logging import (
    _ContainerFormatter,
    _RequestContextFilter,
    request_id_var,
    setup_logging,
)


def _record(level: int = logging.INFO, msg: str = "hello", lineno: int = 1) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_third_party_at_debug() -> None:
    setup_logging("debug")
    assert logging.getLogger("uvicorn").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_installs_request_filter_on_handler() -> None:
    setup_logging("info")
    assert any(
        isinstance(f, _RequestContextFilter)
        for handler in logging.getLogger().handlers
        for f in handler.filters
    )


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record())
    assert "hello" in output
    assert "[test.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(
        _record(logging.WARNING, msg="denied", lineno=42)
    )
    assert "denied" in output
    assert "[test.py:42]" in output


# ---- request id filter ----


def test_filter_stamps_default_outside_request() -> None:
    record = _record()
    assert _RequestContextFilter().filter(record) is True
    assert record.request_id == "-"  # type: ignore[attr-defined]


def test_filter_stamps_current_request_id() -> None:
    token = request_id_var.set("req-42")
    try:
        record = _record()
        _RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-42"  # type: ignore[attr-defined]


def test_filter_keeps_explicit_request_id() -> None:
    record = _record()
    record.request_id = "from-extra"  # type: ignore[attr-defined]
    token = request_id_var.set("req-42")
    try:
        _RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "from-extra"  # type: ignore[attr-defined]
