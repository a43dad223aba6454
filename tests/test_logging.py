"""Tests for logging setup."""

import logging
from pathlib import Path

from memvolve.core.logging import get_logger, setup_logging


def test_repeated_setup_does_not_stack_handlers(tmp_path: Path):
    setup_logging()
    logger = setup_logging(level=logging.DEBUG, log_file=tmp_path / "logs" / "memvolve.log")

    assert len(logger.handlers) == 2
    assert logger.level == logging.DEBUG

    logger = setup_logging()
    assert len(logger.handlers) == 1


def test_file_handler_receives_child_records(tmp_path: Path):
    log_file = tmp_path / "memvolve.log"
    setup_logging(level=logging.DEBUG, log_file=log_file)

    get_logger("memory.store").debug("store opened")
    for handler in logging.getLogger("memvolve").handlers:
        handler.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "memvolve.memory.store" in content
    assert "store opened" in content
    setup_logging()


def test_client_library_loggers_are_quieted():
    setup_logging(level=logging.DEBUG)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("LiteLLM").level == logging.WARNING
