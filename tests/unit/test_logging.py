from __future__ import annotations

import json
import logging
import sys

from score_updater.utils.logging import JsonFormatter, _json_formatter, configure_logging

EXPECTED_ROWS = 1200
EXPECTED_BATCHES = 3


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.total_rows = EXPECTED_ROWS
    record.num_batches = EXPECTED_BATCHES

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["total_rows"] == EXPECTED_ROWS
    assert payload["num_batches"] == EXPECTED_BATCHES
    assert "pathname" not in payload


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"batch_size": 500}

    payload = json.loads(_json_formatter(record))

    assert payload["batch_size"] == 500


def test_json_formatter_renders_exceptions() -> None:
    try:
        raise RuntimeError("batch exploded")
    except RuntimeError:
        record = _record("[BATCH FAILED] #2")
        record.exc_info = sys.exc_info()

    payload = json.loads(_json_formatter(record))

    assert "RuntimeError: batch exploded" in payload["exc_info"]


def test_configure_logging_installs_json_formatter_on_root() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(level="DEBUG", json_logs=True)
        assert root.level == logging.DEBUG
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
