"""Logging configuration for the autoprune CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_HANDLER_MARKER = "_autoprune_handler"


def coerce_level(level: int | str) -> int:
    """Return the numeric logging level for ``level``.

    Raises:
        ValueError: If ``level`` names no logging level.
    """
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")
    return numeric


def configure_logging(
    level: int | str = logging.WARNING,
    *,
    log_file: str | Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Route ``autoprune`` loggers to stderr and an optional rotating file.

    Handlers installed by a previous call are replaced, so the CLI can call
    this once per invocation.

    Args:
        level: Logging level (int or name such as "info").
        log_file: Optional path for a rotating file handler.
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files kept.
    """
    numeric_level = coerce_level(level)
    logger = logging.getLogger("autoprune")

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    console_handler.setLevel(numeric_level)
    setattr(console_handler, _HANDLER_MARKER, True)
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=FILE_DATEFMT))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    logger.setLevel(numeric_level)


__all__ = ["configure_logging", "coerce_level", "FILE_FORMAT", "FILE_DATEFMT"]
