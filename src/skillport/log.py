from __future__ import annotations

import logging
import sys

LOGGER_NAME = "skillport"
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | int = "WARNING") -> logging.Logger:
    """Attach a single stderr handler to the package logger. Safe to call more than once."""
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        level = resolved if isinstance(resolved, int) else logging.WARNING
    logger.setLevel(level)

    handler = next((h for h in logger.handlers if getattr(h, "_skillport", False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler._skillport = True  # type: ignore[attr-defined]
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False
    return logger
