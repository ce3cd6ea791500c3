"""Logging helpers shared across the backend and the client layer."""

from __future__ import annotations

import logging
import logging.config
from typing import Any, Dict

__all__ = ["configure_logging", "get_logger"]

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; structured fields travel through ``extra``."""

    return logging.getLogger(name)


def configure_logging(config: Dict[str, Any] | None = None) -> None:
    """Apply a ``dictConfig`` mapping, or a plain console setup when empty."""

    if config:
        logging.config.dictConfig(config)
        return
    logging.basicConfig(level=logging.INFO, format=_DEFAULT_FORMAT)
