"""Alert rule dataclass and its per-host re-check cache."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any

from ..metrics import MetricKind, is_cyclic, normalize_metric

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Coverage(IntEnum):
    ALL = 0  # every host except the exclusions
    NONE = 1  # only the hosts listed in exclusions


@dataclass(frozen=True)
class CycleCheck:
    next_check_at: datetime
    breached: bool


class CycleCheckCache:
    """Host id -> last cyclic check, safe for concurrent per-host access.

    The lock only guards the dict itself; sampling and ledger queries happen
    outside of it so hosts under one rule never wait on each other.
    """

    def __init__(self) -> None:
        self._checks: dict[int, CycleCheck] = {}
        self._lock = threading.Lock()

    def get(self, host_id: int) -> CycleCheck | None:
        with self._lock:
            return self._checks.get(host_id)

    def arm(self, host_id: int, next_check_at: datetime, breached: bool) -> None:
        with self._lock:
            self._checks[host_id] = CycleCheck(next_check_at, breached)

    def __len__(self) -> int:
        with self._lock:
            return len(self._checks)


def _parse_instant(raw: object) -> datetime:
    if raw is None or raw == "":
        return _EPOCH
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    else:
        value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_ids(raw: object) -> set[int]:
    if not raw:
        return set()
    if isinstance(raw, dict):
        return {int(k) for k, v in raw.items() if v}
    return {int(v) for v in raw}


@dataclass
class Rule:
    kind: MetricKind
    min: float = 0.0
    max: float = 0.0
    cycle_start: datetime = _EPOCH
    cycle_interval_hours: int = 1
    duration_s: int = 0
    cover: Coverage = Coverage.ALL
    exclusions: set[int] = field(default_factory=set)
    checks: CycleCheckCache = field(
        default_factory=CycleCheckCache, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.kind = normalize_metric(self.kind)
        self.cover = Coverage(self.cover)
        if self.cycle_interval_hours < 1:
            raise ValueError("cycle_interval_hours must be >= 1")

    @property
    def is_cyclic(self) -> bool:
        return is_cyclic(self.kind)

    def applies_to(self, host_id: int) -> bool:
        excluded = host_id in self.exclusions
        if self.cover == Coverage.ALL:
            return not excluded
        return excluded

    def is_breach(self, value: float) -> bool:
        return (self.max > 0 and value > self.max) or (
            self.min > 0 and value < self.min
        )

    def describe(self) -> str:
        parts = [self.kind.value]
        if self.max > 0:
            parts.append(f"> {self.max:g}")
        if self.min > 0:
            parts.append(f"< {self.min:g}")
        if self.is_cyclic:
            parts.append(f"per {self.cycle_interval_hours}h")
        return " ".join(parts)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rule":
        """Build a rule from its persisted JSON shape.

        ``ignore`` may be a ``{host_id: bool}`` mapping or a list of ids.
        Raises ``UnknownMetricKind`` or ``ValueError`` on invalid input.
        """
        return cls(
            kind=normalize_metric(str(data.get("type", ""))),
            min=float(data.get("min") or 0),
            max=float(data.get("max") or 0),
            cycle_start=_parse_instant(data.get("cycle_start")),
            cycle_interval_hours=int(data.get("cycle_interval") or 1),
            duration_s=int(data.get("duration") or 0),
            cover=Coverage(int(data.get("cover") or 0)),
            exclusions=_parse_ids(data.get("ignore")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "min": self.min,
            "max": self.max,
            "cycle_start": self.cycle_start.isoformat(),
            "cycle_interval": self.cycle_interval_hours,
            "duration": self.duration_s,
            "cover": int(self.cover),
            "ignore": {str(host_id): True for host_id in sorted(self.exclusions)},
        }
