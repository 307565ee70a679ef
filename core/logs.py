"""Rotating file logger shared by the sync services."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from core.settings import LOGGING

SYNC_LOGGER_NAME = "taxjar.sync"


def get_sync_logger(name: str | None = None) -> logging.Logger:
    """Return ``taxjar.sync`` (or a child of it), attaching the file handler once."""
    root = logging.getLogger(SYNC_LOGGER_NAME)
    if not root.handlers:
        LOGGING.path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOGGING.path,
            maxBytes=LOGGING.max_bytes,
            backupCount=LOGGING.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(LOGGING.level)
    if not name:
        return root
    return root.getChild(name)


__all__ = ["SYNC_LOGGER_NAME", "get_sync_logger"]
