"""Counter store adapters.

The limiter depends only on ``AbstractCounterStore`` so the shared Redis
backend and the process-local in-memory backend are interchangeable.
"""

from ratelimit_api.adapters.store.base import AbstractCounterStore
from ratelimit_api.adapters.store.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.store.redis_store import RedisCounterStore

__all__ = ["AbstractCounterStore", "InMemoryCounterStore", "RedisCounterStore"]
