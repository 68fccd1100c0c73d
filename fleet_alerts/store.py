"""JSON file persistence for notification channels and alert rules."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from . import config
from .channels import NotificationChannel, build_channel
from .models.alerts import AlertRule

logger = logging.getLogger(__name__)


class JsonChannelStore:
    """Channel list stored as a JSON array of channel dicts.

    A missing file is an error unless ``optional`` (default
    ``ALERT_CHANNELS_OPTIONAL``) is set, in which case no channels load.
    """

    def __init__(self, path: str | Path | None = None, optional: bool | None = None) -> None:
        self._path = Path(path or config.CHANNELS_FILE)
        self._optional = config.CHANNELS_OPTIONAL if optional is None else optional

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> list[NotificationChannel]:
        if not self._path.exists():
            if not self._optional:
                raise FileNotFoundError(
                    f"Channel file {self._path} does not exist "
                    "(set ALERT_CHANNELS_OPTIONAL=1 to start without channels)"
                )
            logger.warning("Channel file %s does not exist; no channels loaded", self._path)
            return []
        data = json.loads(self._path.read_text())
        if not isinstance(data, list):
            raise ValueError(f"{self._path}: expected a JSON list of channels")
        return [build_channel(item) for item in data]

    def save_all(self, channels: list[NotificationChannel]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [channel.to_dict() for channel in channels]
        self._path.write_text(json.dumps(payload, indent=2))
        logger.info("Saved %d channel(s) to %s", len(payload), self._path)


def load_alert_rules(path: str | Path | None = None) -> list[AlertRule]:
    """Read alert definitions from a JSON list of alert dicts.

    Raises ``FileNotFoundError`` or ``ValueError`` on a missing or invalid file.
    """
    path = Path(path or config.ALERTS_FILE)
    data = json.loads(path.read_text())
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of alerts")
    alerts = [AlertRule.from_dict(item) for item in data]
    logger.info("Loaded %d alert(s) from %s", len(alerts), path)
    return alerts
