"""Logging configuration using loguru.

Intercepts stdlib logging so that SQLAlchemy's engine and pool loggers flow
through loguru with the same format as the manager pipeline.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Map stdlib level name -> loguru level
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, echo_sql: bool = False) -> None:
    """Configure loguru as the sole logging sink.

    Call this once at process startup.  ``echo_sql`` lets SQLAlchemy's
    engine logger through at INFO; otherwise it is held at WARNING.
    """
    level = level.upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if echo_sql else logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    logger.info("Logging initialised (level={})", level)
