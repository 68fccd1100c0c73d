from datetime import datetime, timedelta, timezone

import pytest

from conftest import MB, NOW, DummyLedger
from fleet_alerts.evaluator import (
    MAX_RECHECK_S,
    MIN_RECHECK_S,
    RuleEvaluator,
    recheck_delay,
)
from fleet_alerts.ledger import InMemoryTransferLedger, LedgerError
from fleet_alerts.metrics import MetricKind
from fleet_alerts.models.host import HostSnapshot
from fleet_alerts.models.rule import Coverage, Rule
from fleet_alerts.models.stats import CycleTransferStats


def _cycle_host(**overrides) -> HostSnapshot:
    values = dict(
        id=1,
        name="edge-1",
        net_in_transfer=500 * MB,
        transfer_in_at_cycle_anchor=100 * MB,
    )
    values.update(overrides)
    return HostSnapshot(**values)


def _cycle_rule(interval_hours: int = 1, max_bytes: float = 1000 * MB, **kw) -> Rule:
    return Rule(
        kind=MetricKind.TRANSFER_IN_CYCLE,
        max=max_bytes,
        cycle_start=datetime(2024, 3, 1, tzinfo=timezone.utc),
        cycle_interval_hours=interval_hours,
        **kw,
    )


def test_cpu_threshold():
    evaluator = RuleEvaluator(DummyLedger())
    rule = Rule(kind=MetricKind.CPU, max=90)
    stats = CycleTransferStats()
    assert evaluator.evaluate(rule, HostSnapshot(id=1, cpu=95), stats, NOW) is True
    assert evaluator.evaluate(rule, HostSnapshot(id=1, cpu=50), stats, NOW) is False


def test_min_threshold():
    evaluator = RuleEvaluator(DummyLedger())
    rule = Rule(kind=MetricKind.PROCESS_COUNT, min=5)
    stats = CycleTransferStats()
    assert evaluator.evaluate(rule, HostSnapshot(id=1, process_count=2), stats, NOW)
    assert not evaluator.evaluate(rule, HostSnapshot(id=1, process_count=20), stats, NOW)


def test_offline_rule():
    evaluator = RuleEvaluator(DummyLedger())
    rule = Rule(kind=MetricKind.OFFLINE)
    stats = CycleTransferStats()
    stale = HostSnapshot(id=1, last_active=NOW - timedelta(seconds=10))
    fresh = HostSnapshot(id=1, last_active=NOW - timedelta(seconds=3))
    never = HostSnapshot(id=1)
    assert evaluator.evaluate(rule, stale, stats, NOW) is True
    assert evaluator.evaluate(rule, fresh, stats, NOW) is False
    assert evaluator.evaluate(rule, never, stats, NOW) is True


def test_zero_total_percentage_never_breaches():
    evaluator = RuleEvaluator(DummyLedger())
    rule = Rule(kind=MetricKind.DISK, max=1)
    assert not evaluator.evaluate(rule, HostSnapshot(id=1, disk_used=10), CycleTransferStats(), NOW)


def test_uncovered_non_cyclic_rule_reports_no_breach():
    evaluator = RuleEvaluator(DummyLedger())
    rule = Rule(kind=MetricKind.CPU, max=90, cover=Coverage.ALL, exclusions={1})
    assert evaluator.evaluate(rule, HostSnapshot(id=1, cpu=99), CycleTransferStats(), NOW) is False


def test_uncovered_cyclic_rule_touches_nothing():
    ledger = DummyLedger(total=10 * MB)
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    rule = _cycle_rule(interval_hours=24, max_bytes=1 * MB, cover=Coverage.NONE)

    assert evaluator.evaluate(rule, _cycle_host(), stats, NOW) is False
    assert ledger.calls == []
    assert len(rule.checks) == 0
    assert stats.snapshot().transfer == {}


def test_uncovered_cyclic_rule_returns_cached_status():
    evaluator = RuleEvaluator(DummyLedger())
    stats = CycleTransferStats()
    rule = _cycle_rule(max_bytes=1 * MB)
    assert evaluator.evaluate(rule, _cycle_host(), stats, NOW) is True

    rule.exclusions.add(1)
    later = NOW + timedelta(hours=2)
    assert evaluator.evaluate(rule, _cycle_host(net_in_transfer=0), stats, later) is True
    assert rule.checks.get(1).next_check_at < later


def test_hourly_cycle_usage_without_ledger():
    ledger = DummyLedger(total=123)
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    evaluator.evaluate(_cycle_rule(interval_hours=1), _cycle_host(), stats, NOW)
    assert stats.snapshot().transfer[1] == 400 * MB
    assert ledger.calls == []


def test_daily_cycle_usage_adds_ledger_sum():
    ledger = InMemoryTransferLedger()
    window_start = datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)
    ledger.record(1, window_start - timedelta(hours=1), 999 * MB, 0)  # previous cycle
    ledger.record(1, window_start, 999 * MB, 0)  # boundary row is excluded
    ledger.record(1, window_start + timedelta(hours=3), 50 * MB, 7 * MB)
    ledger.record(2, window_start + timedelta(hours=3), 80 * MB, 0)  # other host
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()

    evaluator.evaluate(_cycle_rule(interval_hours=24), _cycle_host(), stats, NOW)

    view = stats.snapshot()
    assert view.transfer[1] == 450 * MB
    assert view.window_from == window_start
    assert view.window_to == window_start + timedelta(hours=24)
    assert view.server_name[1] == "edge-1"
    assert ledger.queries == 1


def test_debounce_returns_cached_result_without_ledger_queries():
    ledger = DummyLedger(total=0)
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    rule = _cycle_rule(interval_hours=24, max_bytes=300 * MB)

    first = evaluator.evaluate(rule, _cycle_host(), stats, NOW)
    second = evaluator.evaluate(
        rule, _cycle_host(net_in_transfer=100 * MB), stats, NOW + timedelta(seconds=60)
    )

    assert first is True
    assert second is first
    assert len(ledger.calls) == 1


def test_cycle_rule_re_arms_after_delay():
    ledger = DummyLedger(total=0)
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    rule = _cycle_rule(interval_hours=24, max_bytes=300 * MB)

    assert evaluator.evaluate(rule, _cycle_host(), stats, NOW) is True
    later = NOW + timedelta(seconds=MAX_RECHECK_S + 1)
    assert evaluator.evaluate(rule, _cycle_host(net_in_transfer=100 * MB), stats, later) is False
    assert len(ledger.calls) == 2
    assert rule.checks.get(1).breached is False


def test_next_check_is_in_the_future_and_bounded():
    evaluator = RuleEvaluator(DummyLedger())
    stats = CycleTransferStats()
    rule = _cycle_rule(max_bytes=1000 * MB)
    evaluator.evaluate(rule, _cycle_host(), stats, NOW)
    next_at = rule.checks.get(1).next_check_at
    assert NOW + timedelta(seconds=MIN_RECHECK_S) <= next_at
    assert next_at <= NOW + timedelta(seconds=MAX_RECHECK_S)
    assert stats.snapshot().next_update[1] == next_at
    # 400 of 1000 used -> 60% of the longest delay
    assert next_at == NOW + timedelta(seconds=1080)


@pytest.mark.parametrize("usage", [0, 1, 100, 500, 899, 900, 999, 1000])
def test_recheck_delay_bounds(usage):
    delay = recheck_delay(1000, usage)
    assert MIN_RECHECK_S <= delay <= MAX_RECHECK_S


def test_recheck_delay_edges():
    assert recheck_delay(1000, 0) == MAX_RECHECK_S
    assert recheck_delay(1000, 1000) == MIN_RECHECK_S
    assert recheck_delay(1000, 5000) == MIN_RECHECK_S
    assert recheck_delay(1000, -500) == MAX_RECHECK_S
    assert recheck_delay(0, 123) == MAX_RECHECK_S
    assert recheck_delay(-1, 123) == MAX_RECHECK_S


def test_cycle_rule_without_max_uses_longest_delay():
    evaluator = RuleEvaluator(DummyLedger())
    rule = _cycle_rule(max_bytes=0, min=1000 * MB)
    assert evaluator.evaluate(rule, _cycle_host(), CycleTransferStats(), NOW) is True
    assert rule.checks.get(1).next_check_at == NOW + timedelta(seconds=MAX_RECHECK_S)


def test_ledger_failure_skips_without_crashing():
    ledger = DummyLedger(error=LedgerError("database is locked"))
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    rule = _cycle_rule(interval_hours=24, max_bytes=1 * MB)

    assert evaluator.evaluate(rule, _cycle_host(), stats, NOW) is False
    assert len(rule.checks) == 0
    assert stats.snapshot().transfer == {}

    # Next tick queries again instead of waiting out a debounce window
    evaluator.evaluate(rule, _cycle_host(), stats, NOW + timedelta(seconds=1))
    assert len(ledger.calls) == 2


def test_ledger_failure_keeps_previous_status():
    ledger = DummyLedger(total=0)
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    rule = _cycle_rule(interval_hours=24, max_bytes=1 * MB)
    assert evaluator.evaluate(rule, _cycle_host(), stats, NOW) is True

    ledger.error = RuntimeError("timeout")
    later = NOW + timedelta(hours=1)
    assert evaluator.evaluate(rule, _cycle_host(), stats, later) is True


def test_hosts_are_cached_independently():
    ledger = DummyLedger(total=0)
    evaluator = RuleEvaluator(ledger)
    stats = CycleTransferStats()
    rule = _cycle_rule(interval_hours=24, max_bytes=300 * MB)

    assert evaluator.evaluate(rule, _cycle_host(id=1), stats, NOW) is True
    assert evaluator.evaluate(rule, _cycle_host(id=2, net_in_transfer=100 * MB), stats, NOW) is False
    assert len(ledger.calls) == 2
    assert set(stats.snapshot().transfer) == {1, 2}
