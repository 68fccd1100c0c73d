"""Alert rule/state dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .rule import Rule
from .stats import CycleTransferStats


@dataclass
class AlertRule:
    """Named alert; fires for a host when every rule is breached."""

    id: int
    name: str
    rules: list[Rule]
    enabled: bool = True
    stats: list[CycleTransferStats] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.rules:
            raise ValueError(f"alert {self.name!r} has no rules")
        self.stats = [CycleTransferStats(name=self.name) for _ in self.rules]

    def summary(self) -> str:
        return " AND ".join(rule.describe() for rule in self.rules)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertRule":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or f"alert-{data['id']}"),
            rules=[Rule.from_dict(item) for item in data.get("rules") or []],
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class AlertState:
    last_triggered_at: float | None = None
    last_cleared_at: float | None = None
    active: bool = False
