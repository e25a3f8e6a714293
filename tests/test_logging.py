"""Tests for logging setup."""

import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from recast.logging import JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _settings(env: str, log_level: str = "INFO"):
    settings = MagicMock()
    settings.env = env
    settings.log_level = log_level
    return settings


def test_json_formatter_outputs_one_object():
    record = logging.LogRecord(
        "recast.orchestrator", logging.WARNING, __file__, 1, "failed %s", ("x",), None
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["msg"] == "failed x"
    assert payload["logger"] == "recast.orchestrator"
    assert "ts" in payload


def test_json_formatter_includes_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        import sys

        record = logging.LogRecord(
            "recast", logging.ERROR, __file__, 1, "oops", (), sys.exc_info()
        )

    payload = json.loads(JsonFormatter().format(record))

    assert "ValueError: boom" in payload["exc_info"]


def test_setup_logging_prod_uses_json(restore_root_logger):
    with patch("recast.logging.get_settings", return_value=_settings("prod", "WARNING")):
        setup_logging()

    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
    assert restore_root_logger.level == logging.WARNING


def test_setup_logging_dev_uses_plain_format(restore_root_logger):
    with patch("recast.logging.get_settings", return_value=_settings("dev")):
        setup_logging()

    formatter = restore_root_logger.handlers[0].formatter
    assert not isinstance(formatter, JsonFormatter)
    assert restore_root_logger.level == logging.INFO
