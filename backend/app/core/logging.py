"""
Logger factory shared by every backend module.

Usage:
    from app.core.logging import get_logger
    logger = get_logger(__name__)
"""

import logging
import sys
from typing import Optional

from app.core.config import settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    return getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Return a named logger writing to stdout with the standard format."""
    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)

    # Avoid duplicate handlers when the module is imported more than once
    if not logger.handlers:
        logger.setLevel(resolved_level)
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(resolved_level)
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
