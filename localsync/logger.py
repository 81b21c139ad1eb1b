"""Logging setup: rich output on stderr plus an optional log file."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None, *, colored: bool = True) -> logging.Logger:
    """Configure the localsync logger hierarchy.

    Args:
        verbose: Log at DEBUG instead of INFO.
        log_file: Also append plain-text records to this file.
        colored: Enable colored output on stderr.

    Returns:
        The package logger.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger("localsync")
    logger.setLevel(logging.DEBUG if log_file else level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = Console(stderr=True, no_color=not colored)
    rich_handler = RichHandler(console=console, show_path=verbose, rich_tracebacks=verbose)
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
