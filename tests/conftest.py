"""Shared test fixtures and dummy classes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fleet_alerts.channels import DeliveryError, NotificationChannel
from fleet_alerts.ledger import Direction

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
MB = 1024 * 1024


class DummyChannel(NotificationChannel):
    """Channel that records messages instead of sending them."""

    kind = "dummy"

    def __init__(self, id: int, fail: bool = False, enabled: bool = True) -> None:
        super().__init__(id, enabled=enabled)
        self.fail = fail
        self.sent: list[str] = []

    def send(self, text: str) -> None:
        if self.fail:
            raise DeliveryError(f"channel {self.id} is down")
        self.sent.append(text)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.kind}


class DummyLedger:
    """Ledger returning a fixed sum and recording every query."""

    def __init__(self, total: int = 0, error: Exception | None = None) -> None:
        self.total = total
        self.error = error
        self.calls: list[tuple[int, datetime, Direction]] = []

    def sum_transfer(self, host_id: int, since: datetime, direction: Direction) -> int:
        self.calls.append((host_id, since, direction))
        if self.error is not None:
            raise self.error
        return self.total


class DummyStore:
    def __init__(self, channels=None, error: Exception | None = None) -> None:
        self.channels = list(channels or [])
        self.error = error

    def load_all(self):
        if self.error is not None:
            raise self.error
        return list(self.channels)
