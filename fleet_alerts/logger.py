"""Logging setup for the fleet_alerts process."""

from __future__ import annotations

import logging
from typing import Mapping

from . import config

# Delivery libraries log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "telegram", "urllib3")


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    level: str | None = None, module_levels: Mapping[str, str] | None = None
) -> None:
    """Configure the root logger once per process.

    ``level`` defaults to ``LOG_LEVEL``. ``module_levels`` (default
    ``LOG_LEVELS``) overrides single loggers, e.g.
    ``{"fleet_alerts.throttle": "DEBUG"}`` to see muted notifications
    without turning on debug output everywhere. A handler is only added
    when the root logger has none.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)
    root.setLevel(_level(level or config.LOG_LEVEL))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    overrides = config.LOG_LEVELS if module_levels is None else module_levels
    for name, name_level in overrides.items():
        logging.getLogger(name).setLevel(_level(name_level))
