# File: tests/test_logger.py
"""Настройка журналирования проекта."""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from access_scout.logger import LOGGER_NAME, get_logger, init_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    init_logging()


def test_child_loggers_share_project_root():
    log = get_logger("engine")
    assert log.name == f"{LOGGER_NAME}.engine"
    assert log.parent is logging.getLogger(LOGGER_NAME)


def test_reconfigure_replaces_handlers(tmp_path):
    init_logging()
    root = init_logging(level="DEBUG", log_file=tmp_path / "scan.log")
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2
    assert isinstance(root.handlers[1], RotatingFileHandler)

    root = init_logging()
    assert len(root.handlers) == 1


def test_file_output_uses_format(tmp_path):
    path = tmp_path / "scan.log"
    init_logging(level="INFO", log_file=path, log_format="%(name)s:%(message)s")
    get_logger("engine").info("Analyzing %s", "https://example.com/")
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.flush()
    assert "AccessScout.engine:Analyzing https://example.com/" in path.read_text(encoding="utf-8")


def test_library_chatter_is_quieted():
    init_logging(level="DEBUG")
    assert logging.getLogger("aiohttp.access").level == logging.WARNING
    assert logging.getLogger("selenium").level == logging.WARNING
