"""Registry of configured notification channels.

Lifecycle: ``load()`` once at startup (failure is fatal), ``upsert()`` and
``remove()`` while running as channels are edited, ``broadcast()`` whenever an
alert is admitted by the throttle.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol

from .channels import NotificationChannel

logger = logging.getLogger(__name__)


class ChannelLoadError(RuntimeError):
    """Raised when the channel list cannot be loaded at startup."""


class ChannelStore(Protocol):
    def load_all(self) -> list[NotificationChannel]:
        ...


class _ReadWriteLock:
    """Many readers or one writer. Writers wait for active readers to leave."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class NotificationRegistry:
    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels: list[NotificationChannel] = list(channels or [])
        self._lock = _ReadWriteLock()

    def load(self, store: ChannelStore) -> int:
        try:
            channels = list(store.load_all())
        except Exception as exc:
            raise ChannelLoadError(f"Failed to load notification channels: {exc}") from exc
        with self._lock.write():
            self._channels = channels
        logger.info("Loaded %d notification channel(s)", len(channels))
        return len(channels)

    def upsert(self, channel: NotificationChannel) -> None:
        with self._lock.write():
            replaced = False
            for i, existing in enumerate(self._channels):
                if existing.id == channel.id:
                    self._channels[i] = channel
                    replaced = True
            if not replaced:
                self._channels.append(channel)

    def remove(self, channel_id: int) -> int:
        with self._lock.write():
            before = len(self._channels)
            self._channels = [c for c in self._channels if c.id != channel_id]
            return before - len(self._channels)

    def channels(self) -> list[NotificationChannel]:
        with self._lock.read():
            return list(self._channels)

    def broadcast(self, message: str) -> dict[int, str]:
        """Send ``message`` on every enabled channel.

        Returns channel id -> error text for the channels that failed. A
        failing channel never stops delivery to the others.
        """
        failures: dict[int, str] = {}
        with self._lock.read():
            for channel in self._channels:
                if not channel.enabled:
                    continue
                try:
                    channel.send(message)
                except Exception as exc:
                    logger.warning("Failed to send notification via %r: %s", channel, exc)
                    failures[channel.id] = str(exc)
        return failures
