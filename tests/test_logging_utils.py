"""Tests for logging setup."""

import logging

import pytest

from logging_utils import setup_logging


@pytest.fixture
def clean_root_logger():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in before:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


def test_creates_log_file(tmp_path, clean_root_logger):
    logger = setup_logging(log_name="throttlify-test", log_dir=tmp_path / "logs")
    logger.info("hello")

    assert logger.name == "throttlify-test"
    assert (tmp_path / "logs" / "throttlify-test").exists()


def test_repeated_calls_do_not_duplicate_handlers(tmp_path, clean_root_logger):
    setup_logging(log_dir=tmp_path)
    count = len(clean_root_logger.handlers)
    setup_logging(log_dir=tmp_path)
    assert len(clean_root_logger.handlers) == count


def test_quiet_console(tmp_path, clean_root_logger):
    setup_logging(verbose_console_logging=False, log_dir=tmp_path)
    console = [h for h in clean_root_logger.handlers
               if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               and getattr(h, "_throttlify", False)]
    assert console and console[0].level == logging.WARNING
