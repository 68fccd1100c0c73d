"""Build a HostSnapshot for the machine this process runs on."""

from __future__ import annotations

import logging
import os
import platform
from datetime import datetime, timezone

import psutil

from . import config
from .models.host import HostSnapshot

logger = logging.getLogger(__name__)


def _conn_count(kind: str) -> int:
    try:
        return len(psutil.net_connections(kind=kind))
    except (psutil.AccessDenied, OSError):
        logger.debug("net_connections(%s) not permitted", kind, exc_info=True)
        return 0


def collect_local_snapshot(
    host_id: int,
    name: str = "",
    previous: HostSnapshot | None = None,
    transfer_in_at_cycle_anchor: int = 0,
    transfer_out_at_cycle_anchor: int = 0,
    watch_path: str | None = None,
) -> HostSnapshot:
    """Collect CPU, memory, disk, network and process figures via psutil.

    Args:
        host_id: Id the snapshot is reported under.
        name: Display name; defaults to the node name.
        previous: Earlier snapshot of this host, used to turn the cumulative
            network counters into per-second speeds.
        transfer_in_at_cycle_anchor: Inbound counter at the top of the hour.
        transfer_out_at_cycle_anchor: Outbound counter at the top of the hour.
        watch_path: Filesystem path used for disk usage. Defaults to
            ``WATCH_PATH``.

    Note:
        ``cpu_percent`` blocks for half a second to measure utilisation, so
        run this in a worker thread from async code.
    """
    now = datetime.now(timezone.utc)
    cpu_pct = psutil.cpu_percent(interval=0.5)
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    path = watch_path or config.WATCH_PATH
    try:
        du = psutil.disk_usage(path)
        disk_used, disk_total = du.used, du.total
    except OSError:
        logger.warning("disk_usage(%s) failed", path, exc_info=True)
        disk_used = disk_total = 0
    net = psutil.net_io_counters()
    try:
        load1, load5, load15 = os.getloadavg()
    except (OSError, AttributeError):
        load1 = load5 = load15 = 0.0

    in_speed = out_speed = 0
    if previous is not None and previous.last_active is not None:
        elapsed = (now - previous.last_active).total_seconds()
        if elapsed > 0:
            in_speed = max(0, int((net.bytes_recv - previous.net_in_transfer) / elapsed))
            out_speed = max(0, int((net.bytes_sent - previous.net_out_transfer) / elapsed))

    return HostSnapshot(
        id=host_id,
        name=name or platform.node(),
        cpu=float(cpu_pct),
        mem_used=int(mem.used),
        mem_total=int(mem.total),
        swap_used=int(swap.used),
        swap_total=int(swap.total),
        disk_used=int(disk_used),
        disk_total=int(disk_total),
        net_in_speed=in_speed,
        net_out_speed=out_speed,
        net_in_transfer=int(net.bytes_recv),
        net_out_transfer=int(net.bytes_sent),
        load1=float(load1),
        load5=float(load5),
        load15=float(load15),
        tcp_conn_count=_conn_count("tcp"),
        udp_conn_count=_conn_count("udp"),
        process_count=len(psutil.pids()),
        last_active=now,
        transfer_in_at_cycle_anchor=transfer_in_at_cycle_anchor,
        transfer_out_at_cycle_anchor=transfer_out_at_cycle_anchor,
    )
