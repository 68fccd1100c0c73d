"""Metric definitions and the sampler that reads them from host snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .models.host import HostSnapshot

CYCLE_SUFFIX = "_cycle"


class UnknownMetricKind(ValueError):
    """Raised when a rule names a metric kind that does not exist."""


class MetricKind(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    SWAP = "swap"
    DISK = "disk"
    NET_IN_SPEED = "net_in_speed"
    NET_OUT_SPEED = "net_out_speed"
    NET_ALL_SPEED = "net_all_speed"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_ALL = "transfer_all"
    OFFLINE = "offline"
    TRANSFER_IN_CYCLE = "transfer_in_cycle"
    TRANSFER_OUT_CYCLE = "transfer_out_cycle"
    TRANSFER_ALL_CYCLE = "transfer_all_cycle"
    LOAD1 = "load1"
    LOAD5 = "load5"
    LOAD15 = "load15"
    TCP_CONN_COUNT = "tcp_conn_count"
    UDP_CONN_COUNT = "udp_conn_count"
    PROCESS_COUNT = "process_count"


@dataclass(frozen=True)
class MetricDef:
    kind: MetricKind
    label: str
    unit: str | None  # percent, bytes, bytes_per_s, timestamp, load, count
    extract: Callable[[HostSnapshot], float]


def percentage(used: int, total: int) -> float:
    if total == 0:
        return 0.0
    return used * 100 / total


def _delta(current: int, baseline: int) -> int:
    # Counters restart from zero when the host agent restarts
    return max(0, current - baseline)


def _last_active_ts(host: HostSnapshot) -> float:
    if host.last_active is None:
        return 0.0
    return host.last_active.timestamp()


METRIC_DEFS: dict[MetricKind, MetricDef] = {
    MetricKind.CPU: MetricDef(
        MetricKind.CPU, "CPU usage", "percent", lambda h: float(h.cpu)
    ),
    MetricKind.MEMORY: MetricDef(
        MetricKind.MEMORY,
        "Memory usage",
        "percent",
        lambda h: percentage(h.mem_used, h.mem_total),
    ),
    MetricKind.SWAP: MetricDef(
        MetricKind.SWAP,
        "Swap usage",
        "percent",
        lambda h: percentage(h.swap_used, h.swap_total),
    ),
    MetricKind.DISK: MetricDef(
        MetricKind.DISK,
        "Disk usage",
        "percent",
        lambda h: percentage(h.disk_used, h.disk_total),
    ),
    MetricKind.NET_IN_SPEED: MetricDef(
        MetricKind.NET_IN_SPEED,
        "Inbound speed",
        "bytes_per_s",
        lambda h: float(h.net_in_speed),
    ),
    MetricKind.NET_OUT_SPEED: MetricDef(
        MetricKind.NET_OUT_SPEED,
        "Outbound speed",
        "bytes_per_s",
        lambda h: float(h.net_out_speed),
    ),
    MetricKind.NET_ALL_SPEED: MetricDef(
        MetricKind.NET_ALL_SPEED,
        "Total speed",
        "bytes_per_s",
        lambda h: float(h.net_in_speed + h.net_out_speed),
    ),
    MetricKind.TRANSFER_IN: MetricDef(
        MetricKind.TRANSFER_IN,
        "Inbound transfer",
        "bytes",
        lambda h: float(h.net_in_transfer),
    ),
    MetricKind.TRANSFER_OUT: MetricDef(
        MetricKind.TRANSFER_OUT,
        "Outbound transfer",
        "bytes",
        lambda h: float(h.net_out_transfer),
    ),
    MetricKind.TRANSFER_ALL: MetricDef(
        MetricKind.TRANSFER_ALL,
        "Total transfer",
        "bytes",
        lambda h: float(h.net_in_transfer + h.net_out_transfer),
    ),
    MetricKind.OFFLINE: MetricDef(
        MetricKind.OFFLINE, "Offline", "timestamp", _last_active_ts
    ),
    MetricKind.TRANSFER_IN_CYCLE: MetricDef(
        MetricKind.TRANSFER_IN_CYCLE,
        "Inbound transfer this cycle",
        "bytes",
        lambda h: float(_delta(h.net_in_transfer, h.transfer_in_at_cycle_anchor)),
    ),
    MetricKind.TRANSFER_OUT_CYCLE: MetricDef(
        MetricKind.TRANSFER_OUT_CYCLE,
        "Outbound transfer this cycle",
        "bytes",
        lambda h: float(_delta(h.net_out_transfer, h.transfer_out_at_cycle_anchor)),
    ),
    MetricKind.TRANSFER_ALL_CYCLE: MetricDef(
        MetricKind.TRANSFER_ALL_CYCLE,
        "Total transfer this cycle",
        "bytes",
        lambda h: float(
            _delta(h.net_in_transfer, h.transfer_in_at_cycle_anchor)
            + _delta(h.net_out_transfer, h.transfer_out_at_cycle_anchor)
        ),
    ),
    MetricKind.LOAD1: MetricDef(
        MetricKind.LOAD1, "Load (1m)", "load", lambda h: float(h.load1)
    ),
    MetricKind.LOAD5: MetricDef(
        MetricKind.LOAD5, "Load (5m)", "load", lambda h: float(h.load5)
    ),
    MetricKind.LOAD15: MetricDef(
        MetricKind.LOAD15, "Load (15m)", "load", lambda h: float(h.load15)
    ),
    MetricKind.TCP_CONN_COUNT: MetricDef(
        MetricKind.TCP_CONN_COUNT,
        "TCP connections",
        "count",
        lambda h: float(h.tcp_conn_count),
    ),
    MetricKind.UDP_CONN_COUNT: MetricDef(
        MetricKind.UDP_CONN_COUNT,
        "UDP connections",
        "count",
        lambda h: float(h.udp_conn_count),
    ),
    MetricKind.PROCESS_COUNT: MetricDef(
        MetricKind.PROCESS_COUNT,
        "Processes",
        "count",
        lambda h: float(h.process_count),
    ),
}

_missing = set(MetricKind) - set(METRIC_DEFS)
if _missing:
    raise RuntimeError(f"metric kinds without extractor: {sorted(_missing)}")

METRIC_ALIASES: dict[str, str] = {
    "mem": "memory",
    "mem_used": "memory",
    "disk_used": "disk",
    "load": "load1",
    "net_all": "net_all_speed",
    "processes": "process_count",
}


def normalize_metric(name: str | MetricKind) -> MetricKind:
    if isinstance(name, MetricKind):
        return name
    key = (name or "").strip().lower()
    key = METRIC_ALIASES.get(key, key)
    try:
        return MetricKind(key)
    except ValueError:
        raise UnknownMetricKind(f"Unknown metric kind: {name!r}") from None


def get_metric_def(kind: str | MetricKind) -> MetricDef:
    return METRIC_DEFS[normalize_metric(kind)]


def is_cyclic(kind: MetricKind) -> bool:
    return kind.value.endswith(CYCLE_SUFFIX)


def sample(kind: MetricKind, host: HostSnapshot) -> float:
    """Return the scalar value of ``kind`` for ``host``.

    Cyclic kinds yield only the live part (counter minus the cycle-anchor
    baseline); the ledger-backed history is added by ``cycle``.
    """
    return METRIC_DEFS[kind].extract(host)
