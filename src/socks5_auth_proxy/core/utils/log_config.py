"""Logging configuration for the proxy server.

Centralized Loguru setup: a colored console handler and, optionally, a
rotating file handler.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path.home() / ".socks5-auth-proxy" / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """Replace Loguru's default handler with the proxy's handlers.

    Args:
        debug: Log at DEBUG instead of INFO
        log_file: Also write logs to this file, rotated at 10 MB
    """
    level = "DEBUG" if debug else "INFO"
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, backtrace=True, diagnose=debug)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=FILE_FORMAT,
            level="DEBUG",
            backtrace=True,
            diagnose=False,
        )


__all__ = ["logger", "LOG_DIR", "setup_logging"]
