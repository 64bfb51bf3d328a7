"""Tests for logging helpers."""

import logging
from pathlib import Path

import pytest

from codeloop.errors import CommandBlockedError
from codeloop.tools.builtin import BashTool
from codeloop.utils.logging import (
    ROOT_LOGGER,
    LogCapture,
    disable_logging,
    enable_debug_logging,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler and level changes made by a test."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_default_level(self) -> None:
        logger = setup_logging()

        assert logger.name == ROOT_LOGGER
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1

    def test_verbose_enables_debug(self) -> None:
        assert setup_logging(verbose=True).level == logging.DEBUG

    def test_repeated_setup_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()

        assert len(logger.handlers) == 1

    def test_log_file_records_debug(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "codeloop.log"
        setup_logging(log_file=log_file)

        get_logger("tests").debug("written to file only")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        assert "written to file only" in log_file.read_text()

    def test_enable_debug_logging(self) -> None:
        logger = setup_logging()
        enable_debug_logging()

        assert logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in logger.handlers)

    def test_disable_logging(self) -> None:
        disable_logging()
        logger = logging.getLogger(ROOT_LOGGER)

        assert isinstance(logger.handlers[0], logging.NullHandler)
        assert logger.propagate is False


class TestGetLogger:
    """Tests for get_logger."""

    def test_prefixes_names(self) -> None:
        assert get_logger("agent").name == "codeloop.agent"
        assert get_logger("codeloop.tools").name == "codeloop.tools"
        assert get_logger().name == ROOT_LOGGER


class TestLogCapture:
    """Tests for LogCapture."""

    def test_captures_blocked_command_warning(self) -> None:
        with LogCapture() as capture:
            with pytest.raises(CommandBlockedError):
                BashTool().validate_input({"command": "rm -rf /"})

        assert capture.has_message("Blocked", level=logging.WARNING)

    def test_restores_level(self) -> None:
        logger = logging.getLogger("codeloop.capture_test")
        logger.setLevel(logging.ERROR)

        with LogCapture("codeloop.capture_test") as capture:
            logger.debug("visible while capturing")

        assert capture.messages == ["visible while capturing"]
        assert logger.level == logging.ERROR
