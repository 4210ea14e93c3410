"""Logging setup for quarry (loguru)."""

from __future__ import annotations

import logging
import sys

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"

# Third-party stdlib loggers that are noisy at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "LiteLLM", "readability.readability")


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Replace loguru's default sink with quarry's console (and optional file) sinks.

    Args:
        level: Minimum level for the console sink (e.g. "DEBUG", "INFO").
        log_file: Optional path for a rotating plain-text log file.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=level.upper(),
        colorize=True,
        backtrace=False,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            format=_FILE_FORMAT,
            level="DEBUG",
            rotation="10 MB",
            retention="14 days",
            backtrace=True,
            diagnose=False,
        )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
