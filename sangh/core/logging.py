"""
Logging setup for the sangh.* loggers.
"""

from __future__ import annotations

import logging

from sangh.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the package logger once."""
    logger = logging.getLogger("sangh")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if not any(getattr(h, "_sangh_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._sangh_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
