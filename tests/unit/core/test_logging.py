"""
Tests for Structured Logging.

This module tests the logging infrastructure including StructuredLogger
and the get_logger factory.

Test Strategy
-------------
- Focus on logger behavior, not stdlib logging internals
- Keep tests simple and readable (NASA JPL Rule #1: Simple Control Flow)
- Test structured field formatting
- Don't test Rich library integration (external dependency)

Organization
------------
- TestLogConfig: LogConfig dataclass
- TestStructuredLogger: StructuredLogger class
- TestGetLogger: get_logger factory function
- TestConfigureLogging: configure_logging
"""

import logging
from pathlib import Path

import pytest

from trustgate.core.logging import (
    LogConfig,
    StructuredLogger,
    configure_logging,
    get_logger,
)


@pytest.fixture
def restore_logging():
    """Put the default configuration back after a configure_logging test."""
    root = logging.getLogger()
    level = root.level
    yield
    configure_logging(level="INFO")
    root.setLevel(level)


# ============================================================================
# Test Classes
# ============================================================================


class TestLogConfig:
    """Tests for LogConfig dataclass.

    Rule #4: Focused test class - tests only LogConfig
    """

    def test_default_values(self):
        config = LogConfig()

        assert config.level == "INFO"
        assert config.console is True
        assert config.file_path is None

    def test_custom_values(self):
        log_file = Path("/tmp/test.log")
        config = LogConfig(level="DEBUG", file_path=log_file, console=False)

        assert config.level == "DEBUG"
        assert config.file_path == log_file
        assert config.console is False


class TestStructuredLogger:
    """Tests for StructuredLogger class.

    Rule #4: Focused test class - tests only StructuredLogger
    """

    def test_format_without_fields(self):
        logger = StructuredLogger("tg.test.plain", LogConfig(console=False))

        assert logger._format_message("hello") == "hello"

    def test_format_with_kwargs(self):
        logger = StructuredLogger("tg.test.kwargs", LogConfig(console=False))

        result = logger._format_message("pin added", count=3, source="config")

        assert result == "pin added | count=3 | source=config"

    def test_level_applied(self):
        logger = StructuredLogger("tg.test.level", LogConfig(level="DEBUG", console=False))

        assert logger.logger.level == logging.DEBUG

    def test_messages_reach_standard_logging(self, caplog):
        logger = StructuredLogger("tg.test.caplog", LogConfig(console=False))

        with caplog.at_level(logging.INFO, logger="tg.test.caplog"):
            logger.info("Pool reset", certificates=0)

        assert "Pool reset | certificates=0" in caplog.text

    def test_file_handler_writes(self, temp_dir):
        log_file = temp_dir / "logs" / "trust.log"
        logger = StructuredLogger(
            "tg.test.file", LogConfig(console=False, file_path=log_file)
        )

        logger.warning("written", n=1)
        for handler in logger.logger.handlers:
            handler.flush()

        assert "written | n=1" in log_file.read_text()
        for handler in list(logger.logger.handlers):
            handler.close()
            logger.logger.removeHandler(handler)


class TestGetLogger:
    """Tests for get_logger factory function."""

    def test_returns_structured_logger(self):
        assert isinstance(get_logger("tg.test.factory"), StructuredLogger)

    def test_cached_by_name(self):
        assert get_logger("tg.test.cached") is get_logger("tg.test.cached")

    def test_different_names_are_distinct(self):
        assert get_logger("tg.test.one") is not get_logger("tg.test.two")


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_existing_loggers_are_reconfigured(self, restore_logging):
        logger = get_logger("tg.test.reconfigure")

        configure_logging(level="DEBUG")

        assert logger.logger.level == logging.DEBUG
        assert logger.config.level == "DEBUG"

    def test_new_loggers_use_configured_level(self, restore_logging):
        configure_logging(level="ERROR")

        logger = get_logger("tg.test.after_configure")

        assert logger.logger.level == logging.ERROR

    def test_root_level_set(self, restore_logging):
        configure_logging(level="WARNING")

        assert logging.getLogger().level == logging.WARNING
