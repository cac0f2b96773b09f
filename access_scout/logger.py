# === FILE: access_scout/logger.py ===
"""Журналирование AccessScout.

Все модули пишут в дочерние логгеры одного корневого ``AccessScout``
(``get_logger("engine")`` -> ``AccessScout.engine``), поэтому CLI и сервер
настраивают вывод в одном месте через :func:`init_logging`.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Mapping, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "AccessScout"

# драйверы браузеров и HTTP-клиенты пишут на каждый запрос
NOISY_LIBRARIES: Final[Mapping[str, int]] = {
    "aiohttp.access": logging.WARNING,
    "selenium": logging.WARNING,
    "urllib3": logging.WARNING,
    "asyncio": logging.WARNING,
}

_LevelT = Union[int, str]


def _handler(stream_or_file: Union[Path, str, None], fmt: str) -> logging.Handler:
    if stream_or_file is None:
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    else:
        handler = RotatingFileHandler(
            filename=str(stream_or_file),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Настраивает корневой логгер проекта заново: stdout и, если задан, файл с ротацией.

    Вызывается при импорте с настройками по умолчанию и повторно из CLI.
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    root.addHandler(_handler(None, log_format))
    if log_file is not None:
        root.addHandler(_handler(log_file, log_format))
    root.propagate = False

    for name, lib_level in NOISY_LIBRARIES.items():
        logging.getLogger(name).setLevel(lib_level)
    return root


def get_logger(name: str) -> logging.Logger:
    """Дочерний логгер, например ``AccessScout.backends.playwright``."""
    return logging.getLogger(LOGGER_NAME).getChild(name)


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "get_logger", "DEFAULT_FORMAT", "LOGGER_NAME", "NOISY_LIBRARIES"]
