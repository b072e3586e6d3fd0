"""logger.py - Logger factory for ordmap modules."""

from __future__ import annotations

import logging

from .config import LOGGER_NAME

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ordmap namespace.

    Module names already inside the package (``ordmap.table``) are used as
    is; anything else is nested below ``ordmap``.
    """
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
