"""Redis counter store adapter.

Uses the asyncio client from redis-py. The connection is owned by the
caller; this adapter never opens or closes it.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ratelimit_api.adapters.store.base import AbstractCounterStore, StoredValue
from ratelimit_api.core.errors import StoreAppError

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store backed by Redis ``GET``/``SET``/``DECR``/``PTTL``.

    Every command failure is re-raised as ``StoreAppError`` and is never
    retried.
    """

    def __init__(self, client: Redis) -> None:
        """Initialize the adapter.

        Args:
            client: Connected ``redis.asyncio.Redis`` client.
        """
        self.client = client

    @staticmethod
    def _store_error(operation: str, key: str, exc: Exception) -> StoreAppError:
        logger.error(
            "store.command_failed",
            extra={
                "operation": operation,
                "store_key": key,
                "error_type": type(exc).__name__,
            },
        )
        return StoreAppError(
            code="store_unavailable",
            message=f"Counter store {operation} failed",
            details={"operation": operation},
        )

    async def get(self, key: str) -> StoredValue:
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise self._store_error("get", key, exc) from exc

    async def set_if_absent(self, key: str, value: int, ttl_ms: int) -> bool:
        try:
            created = await self.client.set(key, value, px=ttl_ms, nx=True)
        except RedisError as exc:
            raise self._store_error("set_if_absent", key, exc) from exc
        return bool(created)

    async def set(self, key: str, value: int, ttl_ms: int) -> None:
        try:
            await self.client.set(key, value, px=ttl_ms)
        except RedisError as exc:
            raise self._store_error("set", key, exc) from exc

    async def decrement(self, key: str) -> int:
        try:
            return int(await self.client.decr(key))
        except RedisError as exc:
            raise self._store_error("decrement", key, exc) from exc

    async def get_remaining_ttl(self, key: str) -> int:
        try:
            return int(await self.client.pttl(key))
        except RedisError as exc:
            raise self._store_error("get_remaining_ttl", key, exc) from exc
