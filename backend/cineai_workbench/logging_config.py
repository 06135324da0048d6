"""Logging setup for the ``cineai_workbench`` logger tree."""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "cineai_workbench"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_initialized = False


def setup_logging(level: str | int = "INFO", force: bool = False) -> logging.Logger:
    """Attach one stderr handler to the package root logger.

    Safe to call on every Streamlit rerun; handlers are only installed once
    unless ``force`` is set.
    """
    global _initialized

    root_logger = logging.getLogger(ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger.setLevel(level)

    if _initialized and not force:
        return root_logger

    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(handler)

    _initialized = True
    root_logger.debug("Logging initialized at %s", logging.getLevelName(level))
    return root_logger
