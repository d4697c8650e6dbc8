"""Fixed-window request-rate limiter backed by a shared counter store.

Each identity owns one counter key, ``{prefix}:{identity}:count``, holding
the number of requests *remaining* in the current window. The key is created
at ``max_requests - 1`` with a TTL of one window and decremented on every
following request; the store expires it, which starts a new window.

Concurrency: a request makes at most two sequential round-trips (read, then
write). Two concurrent requests for the same identity can observe the same
counter and both be admitted, so under heavy contention the limit may be
exceeded by a small amount. All cross-instance coordination relies on the
store's atomic ``SET NX`` and ``DECR``; there is no in-process locking.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from typing import Any, Callable

from ratelimit_api.adapters.store.base import AbstractCounterStore, StoredValue
from ratelimit_api.schemas.rate_limit import Decision, Outcome
from ratelimit_api.services.rate_limit_config import RateLimitConfig

logger = logging.getLogger(__name__)

RETRY_AFTER_HEADER = "Retry-After"


def hash_identity(identity: Any) -> str:
    """Hash an identity for logging without exposing client addresses."""
    return hashlib.sha256(str(identity).encode()).hexdigest()[:16]


def coerce_count(raw: StoredValue) -> int:
    """Coerce a stored counter value to an int, truncating toward zero.

    Null and non-numeric values count as 0.

    Examples:
        >>> coerce_count("4")
        4
        >>> coerce_count(b"-1")
        -1
        >>> coerce_count("2.7")
        2
        >>> coerce_count(None)
        0
    """
    if raw is None:
        return 0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value):
        return 0
    return int(value)


class RateLimiter:
    """Decides whether a request may proceed and which headers to send.

    The limiter holds no per-request state; every counter lives in the store.
    It never raises for a rejection: the boundary layer turns the returned
    ``Decision`` into a response or an error.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        store: AbstractCounterStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Validated limiter configuration.
            store: Counter store shared by all limiter instances.
            clock: Time source function returning UNIX time in seconds.
        """
        self.config = config
        self.store = store
        self._clock = clock

    def key_for(self, identity: Any) -> str:
        return f"{self.config.key_prefix}:{identity}:count"

    def _reset_timestamp(self) -> int:
        """UNIX seconds at which a window started now would end."""
        now_ms = int(self._clock() * 1000)
        return max((now_ms + self.config.window_ms) // 1000, 0)

    def _headers(self, remaining: int, reset_at: int) -> dict[str, str]:
        names = self.config.header_names
        return {
            names.remaining: str(remaining),
            names.reset: str(reset_at),
            names.total: str(self.config.max_requests),
        }

    async def _start_window(self, key: str, *, overwrite: bool = False) -> None:
        initial = self.config.max_requests - 1
        if overwrite:
            await self.store.set(key, initial, self.config.window_ms)
        else:
            await self.store.set_if_absent(key, initial, self.config.window_ms)

    async def evaluate(self, request: Any) -> Decision:
        """Evaluate one request.

        Args:
            request: Request object handed to the identity extractor.

        Returns:
            Decision with the outcome, headers, and (on reject/forbidden)
            the status and body to respond with.

        Raises:
            Exception: Anything raised by the identity extractor or the
                store propagates unchanged; nothing is retried.
        """
        config = self.config
        identity = config.identity_extractor(request)

        if identity is None:
            return Decision(outcome=Outcome.ACCEPT)

        identity_hash = hash_identity(identity)

        if identity in config.denylist:
            return Decision(
                outcome=Outcome.FORBIDDEN, status=403, identity_hash=identity_hash
            )

        if identity in config.allowlist:
            return Decision(outcome=Outcome.ACCEPT, identity_hash=identity_hash)

        key = self.key_for(identity)
        raw = await self.store.get(key)
        reset_at = self._reset_timestamp()
        max_remaining = config.max_requests - 1

        if raw is None:
            await self._start_window(key)
            logger.debug(
                "rate_limit.remaining",
                extra={
                    "identity_hash": identity_hash,
                    "remaining": max_remaining,
                    "limit": config.max_requests,
                },
            )
            return Decision(
                outcome=Outcome.ACCEPT,
                headers=self._headers(max_remaining, reset_at),
                identity_hash=identity_hash,
            )

        current = coerce_count(raw)
        ttl_ms = await self.store.get_remaining_ttl(key)

        if current - 1 >= 0:
            # The header uses the value read above, not the DECR reply.
            await self.store.decrement(key)
            logger.debug(
                "rate_limit.remaining",
                extra={
                    "identity_hash": identity_hash,
                    "remaining": current - 1,
                    "limit": config.max_requests,
                },
            )
            return Decision(
                outcome=Outcome.ACCEPT,
                headers=self._headers(current - 1, reset_at),
                identity_hash=identity_hash,
            )

        if ttl_ms < 0:
            logger.warning(
                "rate_limit.stuck_key_reset",
                extra={
                    "identity_hash": identity_hash,
                    "counter": current,
                    "ttl_ms": ttl_ms,
                },
            )
            await self._start_window(key, overwrite=True)
            return Decision(
                outcome=Outcome.ACCEPT,
                headers=self._headers(max_remaining, reset_at),
                identity_hash=identity_hash,
            )

        headers = self._headers(current, reset_at)
        headers[RETRY_AFTER_HEADER] = str(reset_at)
        return Decision(
            outcome=Outcome.REJECT,
            headers=headers,
            body=config.render_error_message(ttl_ms),
            status=429,
            retry_after_ms=ttl_ms,
            identity_hash=identity_hash,
        )
