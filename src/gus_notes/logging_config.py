"""Logging setup for gus-notes.

All modules obtain their logger through :func:`get_logger` so records are
grouped under the ``gus_notes`` namespace:

    from .logging_config import get_logger

    logger = get_logger("oauth.flow")
    logger.info("Listener bound on port %d", port)
"""

from __future__ import annotations

import logging
import os
import sys

ROOT_LOGGER_NAME = "gus_notes"

_DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package namespace.

    Args:
        name: Dotted sub-name, e.g. ``"oauth.flow"``

    Returns:
        logging.Logger named ``gus_notes.<name>``
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level: str | None = None) -> None:
    """Configure the package logger.

    The level comes from ``level`` or the ``LOG_LEVEL`` environment variable
    (default ``INFO``). Calling this more than once replaces the handler
    instead of stacking duplicates.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
    root.addHandler(handler)
    root.propagate = False


def mask_secret(value: str | None, keep: int = 4) -> str:
    """Mask a secret for display, keeping a few characters at each end."""
    if not value:
        return "(not set)"
    if len(value) <= keep * 2:
        return "****"
    return value[:keep] + "****" + value[-keep:]
