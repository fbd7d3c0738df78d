"""Loguru sink setup, called once at process startup."""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

VALID_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def configure_logging(level: str = "INFO") -> str:
    """Replace loguru's default sink with one at the requested level."""
    level = (level or "INFO").upper()
    if level not in VALID_LEVELS:
        level = "INFO"
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    return level
