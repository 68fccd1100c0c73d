"""Cycle transfer statistics shared with reporting layers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CycleTransferView:
    """Point-in-time copy of a :class:`CycleTransferStats`."""

    window_from: datetime | None
    window_to: datetime | None
    server_name: dict[int, str]
    transfer: dict[int, int]
    next_update: dict[int, datetime]


@dataclass
class CycleTransferStats:
    """Per-rule cycle usage, keyed by host id.

    Written by every host evaluation of the owning rule; read through
    :meth:`snapshot`. Each host entry is independent, so readers only need a
    non-torn copy, not cross-host atomicity.
    """

    name: str = ""
    window_from: datetime | None = None
    window_to: datetime | None = None
    server_name: dict[int, str] = field(default_factory=dict)
    transfer: dict[int, int] = field(default_factory=dict)
    next_update: dict[int, datetime] = field(default_factory=dict)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def record(
        self,
        host_id: int,
        host_name: str,
        usage: float,
        next_update: datetime,
        window_from: datetime,
        window_to: datetime,
    ) -> None:
        with self._lock:
            if self.server_name.get(host_id) != host_name:
                self.server_name[host_id] = host_name
            self.transfer[host_id] = int(usage)
            self.next_update[host_id] = next_update
            self.window_from = window_from
            self.window_to = window_to

    def snapshot(self) -> CycleTransferView:
        with self._lock:
            return CycleTransferView(
                window_from=self.window_from,
                window_to=self.window_to,
                server_name=dict(self.server_name),
                transfer=dict(self.transfer),
                next_update=dict(self.next_update),
            )
