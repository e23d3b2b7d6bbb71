from __future__ import annotations

import logging
import sys

from loguru import logger

_LOGGING_CONFIGURED = False


class _InterceptHandler(logging.Handler):
    """Route stdlib records (uvicorn, sqlalchemy, apscheduler) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    logging.basicConfig(handlers=[_InterceptHandler()], level=level.upper(), force=True)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger.remove()
    logger.add(
        sys.stdout,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name}:{function}:{line} - {message}",
        enqueue=True,
        diagnose=False,
        backtrace=False,
    )

    _LOGGING_CONFIGURED = True
