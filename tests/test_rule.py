from datetime import datetime, timezone

import pytest

from fleet_alerts.metrics import MetricKind, UnknownMetricKind
from fleet_alerts.models.rule import Coverage, Rule


@pytest.mark.parametrize(
    "cover, excluded, applies",
    [
        (Coverage.ALL, False, True),
        (Coverage.ALL, True, False),
        (Coverage.NONE, False, False),
        (Coverage.NONE, True, True),
    ],
)
def test_coverage_table(cover, excluded, applies):
    rule = Rule(kind=MetricKind.CPU, max=90, cover=cover, exclusions={7} if excluded else set())
    assert rule.applies_to(7) is applies


def test_min_and_max_are_independent():
    rule = Rule(kind=MetricKind.CPU, max=90)
    assert rule.is_breach(95)
    assert not rule.is_breach(0)

    rule = Rule(kind=MetricKind.CPU, min=10)
    assert rule.is_breach(5)
    assert not rule.is_breach(1000)

    rule = Rule(kind=MetricKind.CPU, min=10, max=90)
    assert rule.is_breach(5)
    assert rule.is_breach(95)
    assert not rule.is_breach(50)

    assert not Rule(kind=MetricKind.CPU).is_breach(1e9)


def test_from_dict_parses_persisted_shape():
    rule = Rule.from_dict(
        {
            "type": "transfer_all_cycle",
            "max": 1024,
            "cycle_start": "2024-01-01T00:00:00Z",
            "cycle_interval": 720,
            "duration": 60,
            "cover": 1,
            "ignore": {"3": True, "4": False, "5": True},
        }
    )
    assert rule.kind == MetricKind.TRANSFER_ALL_CYCLE
    assert rule.is_cyclic
    assert rule.max == 1024
    assert rule.min == 0
    assert rule.cycle_start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert rule.cycle_interval_hours == 720
    assert rule.duration_s == 60
    assert rule.cover == Coverage.NONE
    assert rule.exclusions == {3, 5}


def test_from_dict_accepts_id_list_and_naive_times():
    rule = Rule.from_dict(
        {"type": "cpu", "max": 80, "ignore": [1, 2], "cycle_start": "2024-02-01T00:00:00"}
    )
    assert rule.exclusions == {1, 2}
    assert rule.cycle_start.tzinfo is not None


def test_round_trip_through_dict():
    rule = Rule(kind="disk", max=90, cover=Coverage.ALL, exclusions={9})
    again = Rule.from_dict(rule.to_dict())
    assert again == rule


def test_invalid_rules():
    with pytest.raises(UnknownMetricKind):
        Rule.from_dict({"type": "bogus"})
    with pytest.raises(ValueError):
        Rule(kind=MetricKind.TRANSFER_IN_CYCLE, cycle_interval_hours=0)


def test_describe():
    assert Rule(kind=MetricKind.CPU, max=90).describe() == "cpu > 90"
    rule = Rule(kind=MetricKind.TRANSFER_IN_CYCLE, max=100, cycle_interval_hours=24)
    assert rule.describe() == "transfer_in_cycle > 100 per 24h"
