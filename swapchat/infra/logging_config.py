"""Logging setup shared by the API process and background consumers."""

from __future__ import annotations

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; later calls only adjust the level."""
    global _configured
    resolved = (level or "INFO").upper()
    if not _configured:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
        _configured = True
    logging.getLogger().setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"swapchat.{name}")
