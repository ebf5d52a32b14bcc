"""Logging helpers for the dmsarchive CLI."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import colorlog

LOG_COLORS = {
    "DEBUG": "bold_cyan",
    "INFO": "bold_green",
    "WARNING": "bold_yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red,bg_white",
}

_FORMAT = "[%(asctime)s] <%(name)s> %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _use_color() -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    return sys.stderr.isatty()


def configure_logging(verbose: bool, log_file: str | Path | None = None) -> None:
    """
    Send the library logs to stderr, in color when stderr is a terminal.

    When log_file is given the same records are appended to it, without
    colors, so that the job log survives the run.
    """
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    if _use_color():
        handler.setFormatter(
            colorlog.ColoredFormatter(
                fmt="%(log_color)s[%(asctime)s] <%(name)s> %(levelname)s:%(reset)s %(message)s",
                log_colors=LOG_COLORS,
                datefmt=_DATEFMT,
            )
        )
    else:
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    handlers: list[logging.Handler] = [handler]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        handlers.append(file_handler)
    logging.basicConfig(level=level, handlers=handlers)
