"""Logging configuration for image-deduper."""

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER_PREFIX = "image_deduper"


def setup_logger(
    name: str = PACKAGE_LOGGER_PREFIX,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level (default: INFO)
        log_file: Optional file path for log output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_format = logging.Formatter(
        fmt="%(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if log_file:
        _add_file_handler(logger, log_file)

    return logger


def set_log_level(level: int, log_file: Optional[Path] = None) -> None:
    """
    Change the level of every image-deduper logger created so far.

    Args:
        level: New logging level for loggers and their console handlers
        log_file: Optional file that every package logger should also write to
    """
    for name in list(logging.root.manager.loggerDict):
        if name != PACKAGE_LOGGER_PREFIX and not name.startswith(
            PACKAGE_LOGGER_PREFIX + "."
        ):
            continue

        logger = logging.getLogger(name)
        logger.setLevel(min(level, logging.DEBUG) if log_file else level)
        for handler in logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)

        if log_file:
            _add_file_handler(logger, log_file)


def _add_file_handler(logger: logging.Logger, log_file: Path) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    target = str(log_file.resolve())
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)  # More verbose in file
    file_format = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_format)
    logger.addHandler(file_handler)
