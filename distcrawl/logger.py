"""Logging setup for **DistCrawl**.

All modules log through children of one project logger::

    from distcrawl.logger import get_logger
    log = get_logger("pipeline")        # -> "DistCrawl.pipeline"
    log.warning("Fetch failed: %s", exc)

Nothing is configured on import; an embedding application keeps full control
until it calls :func:`configure` (the CLI does so through :func:`init_logging`).
Console output goes to *stderr* so that ``distcrawl crawl`` can print its JSON
report on stdout; a rotating log file can be added on top.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Mapping, Optional, TextIO, Union

# --------------------------------------------------------------------------- #
# Constants                                                                   #
# --------------------------------------------------------------------------- #

ROOT_NAME: Final[str] = "DistCrawl"
DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
ROTATE_BYTES: Final[int] = 10 * 1024 * 1024
ROTATE_BACKUPS: Final[int] = 5

Level = Union[int, str]


# --------------------------------------------------------------------------- #
# Handlers                                                                    #
# --------------------------------------------------------------------------- #


def _console(fmt: str, stream: Optional[TextIO]) -> logging.Handler:
    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setFormatter(logging.Formatter(fmt))
    return console


def _rotating(path: Path | str, fmt: str) -> logging.Handler:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rotating = RotatingFileHandler(path, maxBytes=ROTATE_BYTES, backupCount=ROTATE_BACKUPS, encoding="utf-8")
    rotating.setFormatter(logging.Formatter(fmt))
    return rotating


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def configure(
    *,
    level: Level = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
    stream: Optional[TextIO] = None,
    component_levels: Optional[Mapping[str, Level]] = None,
) -> logging.Logger:
    """Attach console (and optionally file) output to the project logger.

    Parameters
    ----------
    level
        Level of the project logger, e.g. ``"DEBUG"`` to see every admission
        reject.
    log_file
        Rotating log file; *None* keeps output on the console only.
    log_format
        :class:`logging.Formatter` format string shared by all handlers.
    replace_handlers
        Drop handlers from an earlier call first.
    stream
        Console stream, *stderr* when omitted.
    component_levels
        Per-component overrides, e.g. ``{"robots": "DEBUG"}``.
    """
    root = logging.getLogger(ROOT_NAME)
    root.setLevel(level)
    if replace_handlers:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

    root.addHandler(_console(log_format, stream))
    if log_file is not None:
        root.addHandler(_rotating(log_file, log_format))
    root.propagate = False

    for component, component_level in (component_levels or {}).items():
        get_logger(component).setLevel(component_level)
    return root


def init_logging(
    level: Level = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """CLI entry: fresh handlers at *level*."""
    return configure(level=level, log_file=log_file, log_format=log_format)


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_NAME}.{component}")


logger: logging.Logger = logging.getLogger(ROOT_NAME)

__all__ = ["logger", "configure", "init_logging", "get_logger", "DEFAULT_FORMAT"]
