"""Alert sentinel: evaluates alerts per host and sends the notifications."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable

from .evaluator import RuleEvaluator
from .ledger import TransferLedger
from .models.alerts import AlertRule, AlertState
from .models.host import HostSnapshot
from .notifications import ChannelStore, NotificationRegistry
from .store import JsonChannelStore
from .throttle import NotificationThrottle

logger = logging.getLogger(__name__)


def _host_label(host: HostSnapshot) -> str:
    return f"{host.name} (#{host.id})" if host.name else f"#{host.id}"


def build_alert_message(alert: AlertRule, host: HostSnapshot, recovered: bool) -> str:
    # No live values here: the text is the throttle fingerprint and must stay
    # identical while the same condition persists.
    if recovered:
        return f"[RESOLVED] {alert.name}: {_host_label(host)} is back to normal"
    return f"[ALERT] {alert.name}: {_host_label(host)} matched {alert.summary()}"


class AlertSentinel:
    def __init__(
        self,
        evaluator: RuleEvaluator,
        throttle: NotificationThrottle,
        registry: NotificationRegistry,
    ) -> None:
        self._evaluator = evaluator
        self._throttle = throttle
        self._registry = registry
        self._states: dict[tuple[int, int], AlertState] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls, ledger: TransferLedger, store: ChannelStore | None = None
    ) -> "AlertSentinel":
        """Build a sentinel with channels loaded from ``store``.

        Raises ``ChannelLoadError`` when the channels cannot be loaded.
        """
        registry = NotificationRegistry()
        registry.load(store or JsonChannelStore())
        return cls(RuleEvaluator(ledger), NotificationThrottle(), registry)

    @property
    def registry(self) -> NotificationRegistry:
        return self._registry

    def state_for(self, alert_id: int, host_id: int) -> AlertState:
        with self._lock:
            return self._states.setdefault((alert_id, host_id), AlertState())

    def check(
        self, alert: AlertRule, host: HostSnapshot, now: datetime | None = None
    ) -> str | None:
        """Evaluate ``alert`` for ``host`` and notify on incidents.

        Every rule is evaluated even after one passes so cyclic statistics
        stay current. Returns the message that was delivered, if any.
        """
        if not alert.enabled:
            return None
        now = now or datetime.now(timezone.utc)
        results = [
            self._evaluator.evaluate(rule, host, stats, now)
            for rule, stats in zip(alert.rules, alert.stats)
        ]
        breached = all(results)
        state = self.state_for(alert.id, host.id)
        ts = now.timestamp()

        with self._lock:
            if breached:
                if not state.active:
                    state.active = True
                    state.last_triggered_at = ts
            elif state.active:
                state.active = False
                state.last_cleared_at = ts
            else:
                return None

        message = build_alert_message(alert, host, recovered=not breached)
        # Recoveries happen once per incident and are never muted
        if self.notify(message, muteable=breached, now=now):
            return message
        return None

    def check_all(
        self,
        alerts: Iterable[AlertRule],
        hosts: Iterable[HostSnapshot],
        now: datetime | None = None,
    ) -> list[str]:
        now = now or datetime.now(timezone.utc)
        hosts = list(hosts)
        sent: list[str] = []
        for alert in alerts:
            if not alert.enabled:
                continue
            for host in hosts:
                message = self.check(alert, host, now)
                if message:
                    sent.append(message)
        return sent

    def notify(
        self, message: str, muteable: bool = True, now: datetime | None = None
    ) -> bool:
        """Broadcast ``message`` unless the throttle mutes it.

        ``now`` is the evaluation instant; muting runs on the same clock.
        """
        ts = now.timestamp() if now is not None else None
        if not self._throttle.admit(message, muteable, now=ts):
            return False
        failures = self._registry.broadcast(message)
        if failures:
            logger.warning(
                "Notification delivered with %d failed channel(s)", len(failures)
            )
        return True
