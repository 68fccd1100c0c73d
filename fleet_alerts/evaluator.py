"""Rule evaluation against host snapshots."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from .cycle import cumulative_cycle_usage, cycle_window_start
from .ledger import TransferLedger
from .metrics import MetricKind, sample
from .models.host import HostSnapshot
from .models.rule import Rule
from .models.stats import CycleTransferStats

logger = logging.getLogger(__name__)

MIN_RECHECK_S = 180.0
MAX_RECHECK_S = 1800.0
OFFLINE_GRACE_S = 6.0


def recheck_delay(rule_max: float, usage: float) -> float:
    """Seconds until a cyclic rule should be sampled again.

    The delay shrinks linearly as usage approaches the cap. Without a cap the
    linear formula is undefined and the longest delay is used.
    """
    if rule_max <= 0:
        return MAX_RECHECK_S
    seconds = MAX_RECHECK_S * (rule_max - usage) / rule_max
    return min(MAX_RECHECK_S, max(MIN_RECHECK_S, seconds))


class RuleEvaluator:
    """Decide whether a rule is breached for a host.

    Cyclic transfer rules are debounced per host: after each real sample the
    rule is not sampled again for that host until the re-check time passes,
    and the cached result is returned instead. This keeps ledger queries off
    the per-tick path.
    """

    def __init__(self, ledger: TransferLedger) -> None:
        self._ledger = ledger

    def evaluate(
        self,
        rule: Rule,
        host: HostSnapshot,
        stats: CycleTransferStats,
        now: datetime | None = None,
    ) -> bool:
        now = now or datetime.now(timezone.utc)
        cyclic = rule.is_cyclic

        if not rule.applies_to(host.id):
            return self._cached_breach(rule, host) if cyclic else False

        if cyclic:
            cached = rule.checks.get(host.id)
            if cached is not None and cached.next_check_at > now:
                return cached.breached
            return self._evaluate_cycle(rule, host, stats, now)

        src = sample(rule.kind, host)
        if rule.kind == MetricKind.OFFLINE:
            return now.timestamp() - src > OFFLINE_GRACE_S
        return rule.is_breach(src)

    def _cached_breach(self, rule: Rule, host: HostSnapshot) -> bool:
        cached = rule.checks.get(host.id)
        return cached.breached if cached is not None else False

    def _evaluate_cycle(
        self,
        rule: Rule,
        host: HostSnapshot,
        stats: CycleTransferStats,
        now: datetime,
    ) -> bool:
        window_from = cycle_window_start(
            rule.cycle_start, rule.cycle_interval_hours, now
        )
        try:
            src = cumulative_cycle_usage(
                rule.kind, host, window_from, rule.cycle_interval_hours, self._ledger
            )
        except Exception:
            # Skip this round; the next tick samples again.
            logger.exception(
                "Ledger query failed for %s on host %s; keeping previous status",
                rule.kind.value,
                host.id,
            )
            return self._cached_breach(rule, host)

        breached = rule.is_breach(src)
        next_check_at = now + timedelta(seconds=recheck_delay(rule.max, src))
        rule.checks.arm(host.id, next_check_at, breached)
        stats.record(
            host.id,
            host.name,
            src,
            next_check_at,
            window_from,
            window_from + timedelta(hours=rule.cycle_interval_hours),
        )
        logger.debug(
            "Cycle %s host=%s usage=%d breached=%s next=%s",
            rule.kind.value,
            host.id,
            int(src),
            breached,
            next_check_at.isoformat(),
        )
        return breached
