"""Logging for ``dashboard_ingest``.

Modules log through ``get_logger(__name__)``-style names under the
``dashboard_ingest`` logger and never attach handlers. The package logger
carries a ``NullHandler`` so library use stays silent; the CLI calls
:func:`configure_logging` to send records to stderr at the level named by
``DASHBOARD_INGEST_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "dashboard_ingest"
LEVEL_ENV = "DASHBOARD_INGEST_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_HANDLER_NAME = "dashboard_ingest.console"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def resolve_level(value: int | str | None = None) -> int:
    """Turn a level name or number into a ``logging`` level.

    ``None`` reads ``DASHBOARD_INGEST_LOG_LEVEL`` (default ``INFO``). Unknown
    names raise ``ValueError`` so a typo in the environment is reported rather
    than silently ignored.
    """

    if value is None:
        value = os.getenv(LEVEL_ENV) or "INFO"
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    levels = logging.getLevelNamesMapping()
    if name not in levels:
        raise ValueError(f"unknown log level {value!r} (set {LEVEL_ENV} to e.g. INFO or DEBUG)")
    return levels[name]


def configure_logging(level: int | str | None = None, *, stream: IO[str] | None = None) -> logging.Logger:
    """Send package log records to ``stream`` (stderr by default).

    Calling it again replaces the console handler instead of stacking a second
    one, so each CLI invocation in the same process logs once per record.
    """

    resolved = resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the package namespace."""

    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
