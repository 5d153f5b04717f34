"""structlog bootstrap."""

from __future__ import annotations

import logging
import os

import structlog

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_log_level(level: str | None = None) -> int:
    """Map a level name (or ``LOGLEVEL`` from the environment) to a logging level."""
    name = (level or os.getenv("LOGLEVEL", "INFO")).upper()
    return LOG_LEVEL_MAP.get(name, logging.INFO)


def configure_logging(level: str | None = None) -> int:
    log_level = resolve_log_level(level)

    # Configure Python logging
    logging.basicConfig(level=log_level, format="%(message)s")

    # Configure structlog with the same level
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )
    return log_level
