"""Logging for ``ledger_recon``.

Library modules call ``get_logger("ledger_recon.<module>")`` and never attach
handlers. Entrypoints call :func:`configure_logging`, which owns exactly one
handler on the ``ledger_recon`` logger; calling it again replaces that handler
so a host that re-invokes the CLI in one process (tests, notebooks) always logs
to the current ``sys.stderr``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "ledger_recon"
LEVEL_ENV = "LEDGER_RECON_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class _ReconHandler(logging.StreamHandler):
    """Marks the handler installed by :func:`configure_logging`."""


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``LEDGER_RECON_LOG_LEVEL`` when None) into a number.

    Raises ``ValueError`` for names ``logging`` does not know, so a typo in the
    environment is reported instead of silently logging at INFO.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    if numeric is None:
        raise ValueError(f"unknown log level {level!r} (set via argument or {LEVEL_ENV})")
    return numeric


def configure_logging(
    level: int | str | None = None,
    *,
    stream: IO[str] | None = None,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Install (or replace) the package handler and return the package logger."""

    resolved = resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        if isinstance(h, (_ReconHandler, logging.NullHandler)):
            logger.removeHandler(h)

    handler = _ReconHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # Records stop here; the host's root handlers would print them twice.
    logger.propagate = False
    return logger


def reset_logging() -> None:
    """Remove the package handler installed by :func:`configure_logging`."""

    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        if isinstance(h, _ReconHandler):
            logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging", "resolve_level"]
