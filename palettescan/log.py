"""Loguru sink configuration shared by the CLI and scripts."""

import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default handler with a single stderr sink at ``level``."""
    global _configured
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())
    _configured = True


def is_configured() -> bool:
    return _configured
