"""Transfer ledger interface and an in-memory implementation.

The ledger is the durable per-host record of hourly transfer counters. The
engine only ever asks it for a sum since an instant; storing the rows is the
job of whatever backs it in production.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    IN = "in"
    OUT = "out"
    BOTH = "both"


class LedgerError(RuntimeError):
    """Raised by ledger implementations when a sum cannot be computed."""


class TransferLedger(Protocol):
    def sum_transfer(self, host_id: int, since: datetime, direction: Direction) -> int:
        """Return bytes recorded strictly after ``since`` for ``host_id``."""
        ...


@dataclass(frozen=True)
class TransferRecord:
    host_id: int
    created_at: datetime
    inbound: int
    outbound: int


class InMemoryTransferLedger:
    """Thread-safe ledger keeping records in a list.

    ``queries`` counts ``sum_transfer`` calls, which is handy when checking
    that cached evaluations do not reach the ledger.
    """

    def __init__(self) -> None:
        self._records: list[TransferRecord] = []
        self._lock = threading.Lock()
        self.queries = 0

    def record(
        self, host_id: int, created_at: datetime, inbound: int, outbound: int
    ) -> None:
        if inbound < 0 or outbound < 0:
            raise LedgerError("transfer counters must not be negative")
        with self._lock:
            self._records.append(
                TransferRecord(host_id, created_at, int(inbound), int(outbound))
            )

    def sum_transfer(self, host_id: int, since: datetime, direction: Direction) -> int:
        with self._lock:
            self.queries += 1
            total = 0
            for rec in self._records:
                if rec.host_id != host_id or rec.created_at <= since:
                    continue
                if direction in (Direction.IN, Direction.BOTH):
                    total += rec.inbound
                if direction in (Direction.OUT, Direction.BOTH):
                    total += rec.outbound
        logger.debug(
            "ledger sum host=%s since=%s direction=%s -> %d",
            host_id,
            since.isoformat(),
            direction.value,
            total,
        )
        return total

    def prune(self, before: datetime) -> int:
        """Drop records created at or before ``before``; return how many."""
        with self._lock:
            kept = [rec for rec in self._records if rec.created_at > before]
            dropped = len(self._records) - len(kept)
            self._records = kept
        return dropped
