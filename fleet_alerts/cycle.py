"""Billing-cycle window and usage accounting."""

from __future__ import annotations

from datetime import datetime, timedelta

from .ledger import Direction, TransferLedger
from .metrics import MetricKind, is_cyclic, sample
from .models.host import HostSnapshot

_CYCLE_DIRECTIONS: dict[MetricKind, Direction] = {
    MetricKind.TRANSFER_IN_CYCLE: Direction.IN,
    MetricKind.TRANSFER_OUT_CYCLE: Direction.OUT,
    MetricKind.TRANSFER_ALL_CYCLE: Direction.BOTH,
}


def cycle_window_start(anchor: datetime, interval_hours: int, now: datetime) -> datetime:
    """Return the start of the anchor-aligned window containing ``now``.

    Windows are ``interval_hours`` long and line up with ``anchor``, not with
    calendar boundaries.

    Example:
        >>> from datetime import timezone
        >>> anchor = datetime(2024, 1, 1, 8, tzinfo=timezone.utc)
        >>> cycle_window_start(anchor, 24, datetime(2024, 1, 3, 7, tzinfo=timezone.utc))
        datetime.datetime(2024, 1, 2, 8, 0, tzinfo=datetime.timezone.utc)
    """
    interval_s = int(interval_hours) * 3600
    elapsed = int(now.timestamp()) - int(anchor.timestamp())
    return anchor + timedelta(seconds=(elapsed // interval_s) * interval_s)


def cumulative_cycle_usage(
    kind: MetricKind,
    host: HostSnapshot,
    window_start: datetime,
    interval_hours: int,
    ledger: TransferLedger,
) -> float:
    """Bytes used by ``host`` in the current cycle for a cyclic ``kind``.

    One-hour cycles are fully covered by the live counter minus the baseline
    taken at the top of the hour. Longer cycles add the ledger history, since
    the hourly baseline has rolled over many times inside the window.
    """
    if not is_cyclic(kind):
        raise ValueError(f"{kind.value} is not a cyclic metric")
    usage = sample(kind, host)
    if interval_hours == 1:
        return usage
    return usage + ledger.sum_transfer(host.id, window_start, _CYCLE_DIRECTIONS[kind])
