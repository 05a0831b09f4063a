"""Logging configuration for quire."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """(Re)configure the root logger with quire's line format.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        level=level.upper(),
        format=_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # LiteLLM logs every request at INFO; keep it quiet unless debugging.
    if level.upper() != "DEBUG":
        logging.getLogger("LiteLLM").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for *name* (typically ``__name__``)."""
    return logging.getLogger(name)
