"""Logging configuration using loguru.

Intercepts stdlib logging so that libtmux and anything else using
``logging`` flows through loguru with a unified format.  Diagnostics go
to stderr; user-facing output is printed by the CLI itself.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging-module frames so the caller is reported.
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "WARNING") -> None:
    """Configure loguru as the sole logging sink.

    Call this once at CLI startup, before any tmux call.
    """
    level = level.upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    # libtmux logs every tmux invocation at DEBUG
    if level != "TRACE":
        logging.getLogger("libtmux").setLevel(logging.INFO)

    logger.debug("Logging initialised (level={})", level)
