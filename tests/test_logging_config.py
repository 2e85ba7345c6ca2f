"""Tests for structured logging."""

import json
import logging
import sys

from culinai.utils.logging_config import JSONFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord("culinai.test", logging.INFO, __file__, 1, "Searching %s", ("soup",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_json_with_extra_fields():
    payload = json.loads(JSONFormatter().format(_record(model="model-a", attempt=2)))

    assert payload["message"] == "Searching soup"
    assert payload["severity"] == "INFO"
    assert payload["logger"] == "culinai.test"
    assert payload["model"] == "model-a"
    assert payload["attempt"] == 2
    assert "msg" not in payload
    assert payload["timestamp"].endswith("Z")


def test_formatter_includes_exception():
    try:
        raise ValueError("bad json")
    except ValueError:
        record = logging.LogRecord("culinai.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    payload = json.loads(JSONFormatter().format(record))
    assert "ValueError: bad json" in payload["exception"]


def test_setup_logging_installs_single_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        setup_logging("WARNING")

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
