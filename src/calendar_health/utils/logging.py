"""Logging configuration for Calendar Health application."""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO, Union

from .exceptions import ConfigurationError

LOGGER_NAME = "calendar_health"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"


def resolve_level(level: Union[str, int]) -> int:
    """
    Turn a level name (case-insensitive) or number into a logging level.

    Raises:
        ConfigurationError: If the name is not a standard logging level
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ConfigurationError(f"Unknown log level: {level}")
    return value


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Console level name or number
        log_file: Optional file that receives DEBUG and above
        stream: Console stream, stderr by default so JSON on stdout stays clean

    Returns:
        The ``calendar_health`` logger
    """
    console_level = resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    # The file handler wants DEBUG even when the console is quieter
    logger.setLevel(logging.DEBUG if log_file else console_level)

    return logger
