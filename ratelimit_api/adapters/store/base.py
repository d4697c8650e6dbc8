"""Counter store interface.

The rate limiter should depend on this abstraction (not the concrete
implementation) so it can run against Redis in production and against an
in-memory fake in tests.

Semantics follow Redis: values are integers stored as strings, TTLs are in
milliseconds, and ``get_remaining_ttl`` returns -2 for a missing key and -1
for a key that exists without an expiry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

StoredValue = str | bytes | int | None


class AbstractCounterStore(ABC):
    """Interface for the shared key-value store holding rate limit counters."""

    @abstractmethod
    async def get(self, key: str) -> StoredValue:
        """Return the stored value for ``key`` or None when the key is absent."""
        raise NotImplementedError

    @abstractmethod
    async def set_if_absent(self, key: str, value: int, ttl_ms: int) -> bool:
        """Create ``key`` with ``value`` and expiry unless it already exists.

        Args:
            key: Counter key.
            value: Initial integer value.
            ttl_ms: Time-to-live in milliseconds.

        Returns:
            True if the key was created, False if it already existed.
        """
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: int, ttl_ms: int) -> None:
        """Overwrite ``key`` with ``value`` and a fresh expiry."""
        raise NotImplementedError

    @abstractmethod
    async def decrement(self, key: str) -> int:
        """Atomically subtract one from the stored integer and return the result."""
        raise NotImplementedError

    @abstractmethod
    async def get_remaining_ttl(self, key: str) -> int:
        """Return the remaining time-to-live of ``key`` in milliseconds.

        Returns:
            Milliseconds until expiry, -1 when the key has no expiry,
            -2 when the key does not exist.
        """
        raise NotImplementedError
