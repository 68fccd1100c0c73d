"""Entrypoint for watching the machine this process runs on.

Every ``CHECK_INTERVAL_S`` seconds a snapshot is collected, the traffic of
each finished hour is booked into the transfer ledger, and every alert from
``ALERT_RULES_FILE`` is checked against the snapshot.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timedelta

from . import config
from .ledger import InMemoryTransferLedger
from .logger import setup_logging
from .models.alerts import AlertRule
from .models.host import HostSnapshot
from .sentinel import AlertSentinel
from .snapshot import collect_local_snapshot
from .store import load_alert_rules

logger = logging.getLogger(__name__)


def _hour_start(ts: datetime) -> datetime:
    return ts.replace(minute=0, second=0, microsecond=0)


class LocalWatcher:
    """Feeds snapshots of the local host to an ``AlertSentinel``.

    The counters seen in the first tick of each hour become the cycle
    anchors. When the hour rolls over, the traffic since the previous
    anchor is recorded in the ledger at the start of the new hour, so it
    falls inside every window that contains that hour.
    """

    def __init__(
        self,
        sentinel: AlertSentinel,
        ledger: InMemoryTransferLedger,
        alerts: list[AlertRule],
        host_id: int,
        name: str = "",
    ) -> None:
        self._sentinel = sentinel
        self._ledger = ledger
        self._alerts = alerts
        self._host_id = host_id
        self._name = name
        self._previous: HostSnapshot | None = None
        self._anchor_hour: datetime | None = None
        self._anchor_in = 0
        self._anchor_out = 0
        self._horizon = timedelta(
            hours=max(
                (r.cycle_interval_hours for a in alerts for r in a.rules if r.is_cyclic),
                default=1,
            )
        )

    def tick(self) -> list[str]:
        """Collect one snapshot, check every alert and return the messages sent."""
        snap = collect_local_snapshot(self._host_id, self._name, previous=self._previous)
        now = snap.last_active
        hour = _hour_start(now)
        if self._anchor_hour is None:
            self._reanchor(snap, hour)
        elif hour > self._anchor_hour:
            self._ledger.record(
                self._host_id,
                hour,
                max(0, snap.net_in_transfer - self._anchor_in),
                max(0, snap.net_out_transfer - self._anchor_out),
            )
            self._ledger.prune(hour - self._horizon)
            self._reanchor(snap, hour)

        snap = dataclasses.replace(
            snap,
            transfer_in_at_cycle_anchor=self._anchor_in,
            transfer_out_at_cycle_anchor=self._anchor_out,
        )
        self._previous = snap
        return self._sentinel.check_all(self._alerts, [snap], now)

    def _reanchor(self, snap: HostSnapshot, hour: datetime) -> None:
        self._anchor_hour = hour
        self._anchor_in = snap.net_in_transfer
        self._anchor_out = snap.net_out_transfer

    def run_forever(self, stop: threading.Event, interval_s: float) -> None:
        while not stop.is_set():
            try:
                sent = self.tick()
                if sent:
                    logger.info("Sent %d notification(s)", len(sent))
            except Exception:
                logger.exception("Local check failed")
            stop.wait(interval_s)


def run() -> None:
    setup_logging()
    logger.info("Starting fleet_alerts for host #%s", config.LOCAL_HOST_ID)
    alerts = load_alert_rules()
    ledger = InMemoryTransferLedger()
    sentinel = AlertSentinel.from_config(ledger)
    logger.info(
        "Watching %d alert(s) with %d channel(s)",
        len(alerts),
        len(sentinel.registry.channels()),
    )
    watcher = LocalWatcher(sentinel, ledger, alerts, config.LOCAL_HOST_ID)
    try:
        watcher.run_forever(threading.Event(), config.CHECK_INTERVAL_S)
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    run()
