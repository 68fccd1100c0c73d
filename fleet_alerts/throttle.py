"""Exponential mute backoff for repeated notifications."""

from __future__ import annotations

import hashlib
import logging
import threading
import time

from .models.notification import NotificationHistory

logger = logging.getLogger(__name__)

FIRST_MUTE_S = 15 * 60
MAX_MUTE_S = 24 * 60 * 60
CACHE_GRACE_S = 10 * 60
PURGE_EVERY = 256
_LOCK_STRIPES = 32


def fingerprint(message: str) -> str:
    """Digest used to group identical alert texts. Not a security boundary."""
    return hashlib.md5(message.encode("utf-8"), usedforsecurity=False).hexdigest()


class NotificationThrottle:
    """Decide whether an alert text may be delivered now.

    A new text is delivered and then muted for 15 minutes. Each later
    delivery of the same text doubles the mute, up to once per day. Entries
    expire 10 minutes after their mute ends, so a condition that stays quiet
    starts over from 15 minutes.

    Times are Unix timestamps so callers evaluating at an explicit instant
    can pass ``now`` on the same clock; the default is ``time.time()``.
    Expired entries are dropped every ``purge_every`` admits.
    """

    def __init__(self, purge_every: int = PURGE_EVERY) -> None:
        # One map per stripe: every read and write of a map holds its lock.
        self._shards: list[dict[str, NotificationHistory]] = [
            {} for _ in range(_LOCK_STRIPES)
        ]
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]
        self._purge_every = max(1, purge_every)
        self._admits = 0
        self._admits_lock = threading.Lock()

    def __len__(self) -> int:
        total = 0
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                total += len(shard)
        return total

    def _stripe(self, key: str) -> int:
        return int(key[:8], 16) % _LOCK_STRIPES

    def admit(self, message: str, muteable: bool = True, now: float | None = None) -> bool:
        if not muteable:
            return True
        now = time.time() if now is None else now
        key = fingerprint(message)
        stripe = self._stripe(key)
        with self._locks[stripe]:
            admitted = self._admit_locked(self._shards[stripe], key, message, now)
        if self._purge_due():
            self.purge(now)
        return admitted

    def _admit_locked(
        self, shard: dict[str, NotificationHistory], key: str, message: str, now: float
    ) -> bool:
        history = shard.get(key)
        if history is not None and now >= history.expires_at:
            history = None
        if history is None:
            shard[key] = NotificationHistory(
                duration_s=FIRST_MUTE_S,
                until=now + FIRST_MUTE_S,
                expires_at=now + FIRST_MUTE_S + CACHE_GRACE_S,
            )
            return True
        if now < history.until:
            logger.debug("Muted repeated notification: %s", message)
            return False
        duration = min(history.duration_s * 2, MAX_MUTE_S)
        shard[key] = NotificationHistory(
            duration_s=duration,
            until=now + duration,
            expires_at=now + duration + CACHE_GRACE_S,
        )
        return True

    def _purge_due(self) -> bool:
        with self._admits_lock:
            self._admits += 1
            if self._admits < self._purge_every:
                return False
            self._admits = 0
            return True

    def history(self, message: str) -> NotificationHistory | None:
        key = fingerprint(message)
        stripe = self._stripe(key)
        with self._locks[stripe]:
            return self._shards[stripe].get(key)

    def purge(self, now: float | None = None) -> int:
        """Drop expired entries and return how many were removed."""
        now = time.time() if now is None else now
        removed = 0
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                expired = [key for key, entry in shard.items() if now >= entry.expires_at]
                for key in expired:
                    del shard[key]
                removed += len(expired)
        if removed:
            logger.debug("Purged %d expired notification entries", removed)
        return removed
