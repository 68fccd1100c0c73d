"""Host snapshot dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class HostSnapshot:
    """Read-only view of a monitored host at evaluation time.

    Byte counters are cumulative since the host agent started. The two
    ``*_at_cycle_anchor`` counters are the values recorded at the start of
    the current accounting hour.
    """

    id: int
    name: str = ""
    cpu: float = 0.0
    mem_used: int = 0
    mem_total: int = 0
    swap_used: int = 0
    swap_total: int = 0
    disk_used: int = 0
    disk_total: int = 0
    net_in_speed: int = 0
    net_out_speed: int = 0
    net_in_transfer: int = 0
    net_out_transfer: int = 0
    load1: float = 0.0
    load5: float = 0.0
    load15: float = 0.0
    tcp_conn_count: int = 0
    udp_conn_count: int = 0
    process_count: int = 0
    last_active: datetime | None = None
    transfer_in_at_cycle_anchor: int = 0
    transfer_out_at_cycle_anchor: int = 0
