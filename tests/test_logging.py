"""
Tests for the logging module.
"""

import json
import logging

import pytest

from opcua_client.logging import (
    LOGGER_NAME,
    JsonFormatter,
    OpcuaLogger,
    configure_logging,
    get_logger,
    log_error,
    log_info,
)


@pytest.fixture(autouse=True)
def fresh_logger():
    OpcuaLogger.reset()
    yield
    OpcuaLogger.reset()


class Accessor:
    """Stand-in for an external logging accessor."""

    is_valid = True

    def __init__(self):
        self.messages = []

    def log_info(self, message):
        self.messages.append(("info", message))

    def log_warn(self, message):
        self.messages.append(("warn", message))

    def log_error(self, message):
        self.messages.append(("error", message))


def _record(message, level=logging.INFO):
    return logging.LogRecord(LOGGER_NAME, level, __file__, 1, message, None, None)


def test_json_formatter_fields():
    entry = json.loads(JsonFormatter().format(_record("hello")))
    assert entry["message"] == "hello"
    assert entry["level"] == "INFO"
    assert entry["logger"] == LOGGER_NAME
    assert "timestamp" in entry and "id" in entry


def test_json_formatter_passes_json_through():
    entry = json.loads(JsonFormatter().format(_record('{"event": "x"}')))
    assert entry["event"] == "x"
    assert "timestamp" in entry


def test_singleton():
    assert get_logger() is get_logger()


def test_bound_accessor_receives_messages():
    accessor = Accessor()
    assert get_logger().initialize(accessor)
    log_info("one")
    log_error("two")
    assert accessor.messages == [("info", "one"), ("error", "two")]


def test_invalid_accessor_ignored():
    accessor = Accessor()
    accessor.is_valid = False
    assert not get_logger().initialize(accessor)
    assert not get_logger().initialize(None)
    assert not get_logger().is_bound


def test_falls_back_to_stdlib(caplog):
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        log_info("fallback message")
    assert "fallback message" in caplog.text


def test_configure_logging_quiets_asyncua():
    logger = configure_logging(level="DEBUG", json_format=True, library_level="ERROR")
    assert logger.level == logging.DEBUG
    assert logging.getLogger("asyncua").level == logging.ERROR

    configure_logging()
    handlers = [h for h in logger.handlers if getattr(h, "_opcua_client_handler", False)]
    assert len(handlers) == 1
