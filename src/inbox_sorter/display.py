"""Rich-based console and log output for Inbox Sorter."""

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_level(name: str | None) -> int:
    """Map a level name to a logging level; unknown names mean INFO."""
    return _LEVELS.get((name or "").lower(), logging.INFO)


def setup_logging(level: str | None = "info", log_file: str | Path | None = None) -> logging.Logger:
    """Configure the package logger.

    Logs go to the Rich console, or to a monthly rotated file when
    ``log_file`` is given.
    """
    logger = logging.getLogger("inbox_sorter")
    logger.setLevel(log_level(level))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler: logging.Handler = TimedRotatingFileHandler(
            str(log_file), when="D", interval=30, backupCount=12
        )
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)
    logger.propagate = False
    return logger
