"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Mirrors the Redis commands the limiter relies on, including DECR on a
  missing key creating it without an expiry.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratelimit_api.adapters.store.base import AbstractCounterStore

logger = logging.getLogger(__name__)

TTL_MISSING = -2
TTL_PERSISTENT = -1


@dataclass
class _Entry:
    value: int
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping keys in a dict with absolute expiry times.

    Expired keys are dropped lazily on access.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryCounterStore(size={len(self._entries)})"

    def _live_entry_locked(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            logger.debug("store.expired", extra={"store_key": key})
            return None
        return entry

    def _expiry(self, ttl_ms: int) -> float:
        return self._clock() + ttl_ms / 1000

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return None if entry is None else str(entry.value)

    async def set_if_absent(self, key: str, value: int, ttl_ms: int) -> bool:
        with self._lock:
            if self._live_entry_locked(key) is not None:
                return False
            self._entries[key] = _Entry(value=int(value), expires_at=self._expiry(ttl_ms))
            return True

    async def set(self, key: str, value: int, ttl_ms: int) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=int(value), expires_at=self._expiry(ttl_ms))

    async def decrement(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                entry = _Entry(value=0, expires_at=None)
                self._entries[key] = entry
            entry.value -= 1
            return entry.value

    async def get_remaining_ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return TTL_MISSING
            if entry.expires_at is None:
                return TTL_PERSISTENT
            return max(0, int((entry.expires_at - self._clock()) * 1000))

    def clear(self) -> None:
        """Remove all keys."""

        with self._lock:
            self._entries.clear()
