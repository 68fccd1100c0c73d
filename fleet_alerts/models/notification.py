"""Notification mute history dataclass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class NotificationHistory:
    duration_s: float
    until: float
    expires_at: float
