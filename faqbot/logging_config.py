"""
Loguru sinks: console plus rotating combined / error files.
"""

import os
import sys

from loguru import logger

from faqbot.config import settings

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper(), format=_FORMAT)

    if not settings.LOG_TO_FILE:
        return

    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logger.add(
        os.path.join(settings.LOG_DIR, "combined.log"),
        level=settings.LOG_LEVEL.upper(),
        format=_FORMAT,
        rotation="5 MB",
        retention=5,
        encoding="utf-8",
        enqueue=True,
    )
    logger.add(
        os.path.join(settings.LOG_DIR, "error.log"),
        level="ERROR",
        format=_FORMAT,
        rotation="5 MB",
        retention=5,
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
    )
