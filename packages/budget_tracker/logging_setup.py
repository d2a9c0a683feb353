"""Logging for the ``budget_tracker`` package.

Library modules ask for a logger with :func:`get_logger` and never attach
handlers of their own. Entry points call :func:`configure_logging` once at
startup; the CLI does this in its root callback.

The level is taken from the ``level`` argument, else from the
``BUDGET_TRACKER_LOG_LEVEL`` environment variable, else INFO.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

ROOT_LOGGER = "budget_tracker"
LEVEL_ENV_VAR = "BUDGET_TRACKER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn a level name, a numeric string or an int into a logging level.

    Unrecognized names resolve to INFO.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    text = level.strip().upper()
    if text.isdigit():
        return int(text)
    value = logging.getLevelName(text)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send ``budget_tracker`` records to ``stream`` (stderr by default).

    Only the first call configures anything; later calls return the package
    logger unchanged.
    """

    global _handler
    root = logging.getLogger(ROOT_LOGGER)
    if _handler is not None:
        return root

    for h in [h for h in root.handlers if isinstance(h, logging.NullHandler)]:
        root.removeHandler(h)
    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    root.addHandler(_handler)
    root.setLevel(resolve_level(level))
    # Records stop at the package logger so a host's root handler does not repeat them.
    root.propagate = False
    return root


def reset_logging() -> None:
    """Undo :func:`configure_logging` (used by tests and embedding hosts)."""

    global _handler
    root = logging.getLogger(ROOT_LOGGER)
    if _handler is not None:
        root.removeHandler(_handler)
        _handler = None
    root.setLevel(logging.NOTSET)
    root.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``; silent until the package is configured."""

    root = logging.getLogger(ROOT_LOGGER)
    if _handler is None and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "reset_logging", "resolve_level", "get_logger"]
