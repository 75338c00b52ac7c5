"""Logging setup (loguru)"""

import sys
from typing import Optional

from loguru import logger

from config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with the app's stdout sink."""
    logger.remove()
    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL),
        colorize=True,
        backtrace=settings.DEBUG,
    )
