"""Tests for logging configuration."""

import logging
from logging.handlers import RotatingFileHandler

from tabe_assistant.main import configure_logging


def test_configure_logging_console_only(tmp_path):
    """Test that configure_logging works in console-only mode."""
    logging.root.handlers.clear()

    configure_logging(log_level="DEBUG", log_file="")

    assert len(logging.root.handlers) == 1
    assert isinstance(logging.root.handlers[0], logging.StreamHandler)
    assert not isinstance(logging.root.handlers[0], RotatingFileHandler)
    assert logging.root.level == logging.DEBUG


def test_configure_logging_with_file(tmp_path):
    """Test that configure_logging adds RotatingFileHandler when log_file is set."""
    logging.root.handlers.clear()

    log_file = tmp_path / "test.log"
    configure_logging(
        log_level="INFO",
        log_file=str(log_file),
        log_file_max_bytes=5_000_000,
        log_file_backup_count=3,
    )

    assert len(logging.root.handlers) == 2
    assert not isinstance(logging.root.handlers[0], RotatingFileHandler)
    file_handler = logging.root.handlers[1]
    assert isinstance(file_handler, RotatingFileHandler)
    assert file_handler.maxBytes == 5_000_000
    assert file_handler.backupCount == 3
    assert logging.root.level == logging.INFO
    assert log_file.exists()


def test_configure_logging_creates_directory(tmp_path):
    logging.root.handlers.clear()

    log_file = tmp_path / "logs" / "nested" / "test.log"
    assert not log_file.parent.exists()

    configure_logging(log_level="WARNING", log_file=str(log_file))

    assert log_file.parent.exists()
    assert log_file.exists()


def test_configure_logging_unknown_level_falls_back_to_info():
    logging.root.handlers.clear()

    configure_logging(log_level="chatty")

    assert logging.root.level == logging.INFO


def test_configure_logging_writes_to_file(tmp_path):
    """Test that configure_logging actually writes logs to the file."""
    logging.root.handlers.clear()

    log_file = tmp_path / "app.log"
    configure_logging(log_level="INFO", log_file=str(log_file))

    import structlog
    logger = structlog.get_logger()
    logger.info("test_message", key="value")

    for handler in logging.root.handlers:
        handler.flush()

    log_content = log_file.read_text(encoding="utf-8")
    assert "test_message" in log_content or "event" in log_content
