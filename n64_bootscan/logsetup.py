"""
Logging configuration for the bootscan CLI.

Console output goes through rich's RichHandler at a level picked from
-v / -q; an optional log file captures everything at DEBUG with the
``time | level | logger | message`` format.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "n64_bootscan"

FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def console_level(verbosity: int = 0, quiet: bool = False) -> int:
    if quiet:
        return logging.ERROR
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbosity: int = 0, quiet: bool = False,
                  log_file: Optional[str] = None) -> logging.Logger:
    """Configure and return the package logger.

    Safe to call more than once; previous handlers are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    level = console_level(verbosity, quiet)
    console = RichHandler(
        console=Console(stderr=True),
        level=level,
        show_time=False,
        show_path=verbosity > 1,
        markup=False,
        rich_tracebacks=True,
    )
    console.setLevel(level)
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(fh)
        logger.debug("Log file: %s", path)

    return logger
