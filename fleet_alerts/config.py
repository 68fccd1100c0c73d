"""Central configuration for fleet_alerts."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict

logger = logging.getLogger(__name__)

_LEVEL_NAMES = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _read_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to ``default``.

    Args:
        name: Environment variable name.
        default: Value used when the variable is unset, empty or invalid.

    Returns:
        Parsed float value.
    """
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using %s", name, raw, default)
        return default


def _read_bool(name: str) -> bool:
    return (os.environ.get(name) or "false").strip().lower() in {"1", "true", "yes"}


def _split_levels(s: str) -> Dict[str, str]:
    """Parse ``"logger=LEVEL,other=LEVEL"`` into a mapping.

    Entries without ``=`` or with an unknown level are skipped.
    """
    out: Dict[str, str] = {}
    for part in s.split(","):
        name, sep, level = part.partition("=")
        name, level = name.strip(), level.strip().upper()
        if not sep or not name:
            continue
        if level not in _LEVEL_NAMES:
            logger.warning("Ignoring log level %r for %s", level, name)
            continue
        out[name] = level
    return out


@dataclass
class Settings:
    """Configuration settings for fleet_alerts.

    All settings are loaded from environment variables with sensible defaults.
    """

    LOG_LEVEL: str
    CHANNELS_FILE: str
    CHANNELS_OPTIONAL: bool
    ALERTS_FILE: str
    NOTIFY_TIMEOUT_S: float
    CHECK_INTERVAL_S: float
    LOCAL_HOST_ID: int
    TELEGRAM_BOT_TOKEN: str | None
    WATCH_PATH: str
    LOG_LEVELS: Dict[str, str] = field(default_factory=dict)


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to sensible defaults.
    """
    log_level = (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    log_levels = _split_levels(os.environ.get("LOG_LEVELS", ""))
    channels_file = os.environ.get("ALERT_CHANNELS_FILE") or "/app/data/channels.json"
    channels_optional = _read_bool("ALERT_CHANNELS_OPTIONAL")
    alerts_file = os.environ.get("ALERT_RULES_FILE") or "/app/data/alerts.json"
    notify_timeout = _read_float("NOTIFY_TIMEOUT_S", 10.0)
    if notify_timeout <= 0:
        notify_timeout = 10.0
    check_interval = _read_float("CHECK_INTERVAL_S", 60.0)
    if check_interval <= 0:
        check_interval = 60.0
    host_id_raw = (os.environ.get("LOCAL_HOST_ID") or "1").strip()
    try:
        host_id = int(host_id_raw)
    except ValueError:
        logger.warning("Invalid LOCAL_HOST_ID=%r; using 1", host_id_raw)
        host_id = 1
    telegram_token = os.environ.get("TELEGRAM_BOT_TOKEN") or None
    watch_path = (os.environ.get("WATCH_PATH") or "/").strip() or "/"

    return Settings(
        LOG_LEVEL=log_level,
        CHANNELS_FILE=channels_file,
        CHANNELS_OPTIONAL=channels_optional,
        ALERTS_FILE=alerts_file,
        NOTIFY_TIMEOUT_S=notify_timeout,
        CHECK_INTERVAL_S=check_interval,
        LOCAL_HOST_ID=host_id,
        TELEGRAM_BOT_TOKEN=telegram_token,
        WATCH_PATH=watch_path,
        LOG_LEVELS=log_levels,
    )


settings = _read_settings()


def validate_settings() -> None:
    """Validate configuration and log warnings for likely mistakes."""
    if settings.LOG_LEVEL not in _LEVEL_NAMES:
        logger.warning("LOG_LEVEL %r is not a known level; INFO is used", settings.LOG_LEVEL)
    if settings.TELEGRAM_BOT_TOKEN is None:
        logger.info(
            "TELEGRAM_BOT_TOKEN is not set; Telegram channels must carry their own token."
        )
    if settings.CHANNELS_OPTIONAL:
        logger.info("ALERT_CHANNELS_OPTIONAL is set; a missing channel file is not an error")


# Exported constants
LOG_LEVEL: str = settings.LOG_LEVEL
LOG_LEVELS: Dict[str, str] = settings.LOG_LEVELS
CHANNELS_FILE: str = settings.CHANNELS_FILE
CHANNELS_OPTIONAL: bool = settings.CHANNELS_OPTIONAL
ALERTS_FILE: str = settings.ALERTS_FILE
NOTIFY_TIMEOUT_S: float = settings.NOTIFY_TIMEOUT_S
CHECK_INTERVAL_S: float = settings.CHECK_INTERVAL_S
LOCAL_HOST_ID: int = settings.LOCAL_HOST_ID
TELEGRAM_BOT_TOKEN: str | None = settings.TELEGRAM_BOT_TOKEN
WATCH_PATH: str = settings.WATCH_PATH

validate_settings()
