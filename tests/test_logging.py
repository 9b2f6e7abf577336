"""Tests for structured logging setup."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from portal_core.config.schema import LoggingConfig
from portal_core.logging import get_logger, setup_logging
from portal_core.logging.setup import configure_from


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


class TestSetupLogging:
    def test_json_format(self, capsys):
        setup_logging(level="INFO", log_format="json")
        logger = get_logger("test_json")
        logger.info("position_created", position_id=7)

        captured = capsys.readouterr()
        line = json.loads(captured.err.strip())
        assert line["event"] == "position_created"
        assert line["position_id"] == 7
        assert line["level"] == "info"
        assert line["logger"] == "test_json"
        assert line["timestamp"].endswith("Z")

    def test_console_format(self, capsys):
        setup_logging(level="INFO", log_format="console")
        logger = get_logger("test_console")
        logger.info("hello console", actor="admin-1")

        captured = capsys.readouterr()
        assert "hello console" in captured.err
        assert "admin-1" in captured.err

    def test_log_level_filtering(self, capsys):
        setup_logging(level="WARNING", log_format="json")
        logger = get_logger("test_level")
        logger.info("should be hidden")
        logger.warning("should appear")

        captured = capsys.readouterr()
        assert "should be hidden" not in captured.err
        assert "should appear" in captured.err

    def test_get_logger_with_context(self, capsys):
        setup_logging(level="INFO", log_format="json")
        logger = get_logger("test_ctx", position_id=3, actor="admin-1")
        logger.info("context test")

        line = json.loads(capsys.readouterr().err.strip())
        assert line["position_id"] == 3
        assert line["actor"] == "admin-1"

    def test_contextvars_binding(self, capsys):
        setup_logging(level="INFO", log_format="json")
        structlog.contextvars.bind_contextvars(user_id="inv-1", role="investor")

        get_logger("test_ctxvars").info("with context var")

        line = json.loads(capsys.readouterr().err.strip())
        assert line["user_id"] == "inv-1"
        assert line["role"] == "investor"

    def test_stdlib_records_share_format(self, capsys):
        setup_logging(level="INFO", log_format="json")
        logging.getLogger("some.library").warning("plain stdlib record")

        line = json.loads(capsys.readouterr().err.strip())
        assert line["event"] == "plain stdlib record"
        assert line["level"] == "warning"

    def test_chatty_loggers_quieted(self):
        setup_logging(level="DEBUG", log_format="json")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_configure_from_config(self, capsys):
        configure_from(LoggingConfig(level="ERROR", format="json"))
        logger = get_logger("test_cfg")
        logger.warning("dropped")
        logger.error("kept")

        captured = capsys.readouterr()
        assert "dropped" not in captured.err
        assert "kept" in captured.err
