"""Rate limiting dependency for FastAPI routes.

This module wires the limiter service into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counter store (Redis or in-memory) sits behind an
  abstract interface.
- The limiter returns a ``Decision``; only this module decides whether a
  rejection is rendered in place (a plain-text 429) or raised as an
  application error for the exception handlers to render.
"""

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as redis
from fastapi import HTTPException, Request, Response, status

from ratelimit_api.adapters.store.base import AbstractCounterStore
from ratelimit_api.adapters.store.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.store.redis_store import RedisCounterStore
from ratelimit_api.core.config import settings
from ratelimit_api.core.errors import RateLimitExceededAppError, RateLimitRejection
from ratelimit_api.schemas.rate_limit import Decision, Outcome
from ratelimit_api.services.rate_limit_config import RateLimitConfig
from ratelimit_api.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


_limiter: RateLimiter | None = None
_limiter_config: tuple[Any, ...] | None = None
_redis_client: redis.Redis | None = None


def _settings_fingerprint() -> tuple[Any, ...]:
    return (
        tuple(sorted(settings.rate_limit.model_dump().items())),
        tuple(sorted(settings.redis.model_dump().items())),
    )


def _build_store() -> AbstractCounterStore:
    """Create the counter store selected by ``RATE_LIMIT_BACKEND``."""

    global _redis_client

    backend = settings.rate_limit.backend.lower()
    if backend == "memory":
        logger.warning(
            "rate_limit.in_memory_store",
            extra={"reason": "per-process counters, limits are not shared"},
        )
        return InMemoryCounterStore()

    _redis_client = redis.from_url(
        settings.redis.url,
        socket_timeout=settings.redis.socket_timeout_seconds,
        decode_responses=settings.redis.decode_responses,
    )
    return RedisCounterStore(_redis_client)


async def get_rate_limiter() -> RateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module so the store connection is reused
    across requests. If configuration changes (primarily in tests), the
    limiter is rebuilt and the previous Redis connection is closed first.

    Returns:
        RateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config, _redis_client

    fingerprint = _settings_fingerprint()
    if _limiter is None or _limiter_config != fingerprint:
        if _redis_client is not None:
            await _redis_client.aclose()
            _redis_client = None
        config = RateLimitConfig.from_settings(settings.rate_limit)
        _limiter = RateLimiter(config, _build_store())
        _limiter_config = fingerprint

    return _limiter


async def close_rate_limiter() -> None:
    """Drop the cached limiter and close the Redis connection, if any."""

    global _limiter, _limiter_config, _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
    _redis_client = None
    _limiter = None
    _limiter_config = None


def _reject(decision: Decision, limiter: RateLimiter) -> None:
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "identity_hash": decision.identity_hash,
            "limit": limiter.config.max_requests,
            "window_ms": limiter.config.window_ms,
            "retry_after_ms": decision.retry_after_ms,
        },
    )

    body = decision.body or ""
    if limiter.config.throw_on_reject:
        raise RateLimitExceededAppError(
            code="rate_limit_exceeded",
            message=body,
            details={
                "http_status": status.HTTP_429_TOO_MANY_REQUESTS,
                "limit": limiter.config.max_requests,
                "retry_after_ms": decision.retry_after_ms or 0,
            },
            status_code=decision.status or status.HTTP_429_TOO_MANY_REQUESTS,
            headers=dict(decision.headers),
        )

    raise RateLimitRejection(
        body=body,
        headers=dict(decision.headers),
        status_code=decision.status or status.HTTP_429_TOO_MANY_REQUESTS,
    )


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, counts the request against its identity's budget and
    copies the rate limit headers onto the response. Requests over budget
    never reach the route handler.

    Args:
        request: FastAPI request.
        response: Response whose headers are merged into the route's reply.

    Raises:
        HTTPException: 403 for deny-listed identities.
        RateLimitRejection: When the limit is exceeded and rejections are
            rendered in place (plain-text 429 with the message as body).
        RateLimitExceededAppError: When the limit is exceeded and the limiter
            is configured to throw.
    """

    if not settings.rate_limit.enabled:
        return

    limiter = await get_rate_limiter()
    decision = await limiter.evaluate(request)

    if decision.outcome is Outcome.FORBIDDEN:
        logger.warning(
            "rate_limit.forbidden", extra={"identity_hash": decision.identity_hash}
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)

    if decision.outcome is Outcome.REJECT:
        _reject(decision, limiter)

    for name, value in decision.headers.items():
        response.headers[name] = value

    if decision.headers:
        logger.info(
            "rate_limit.allowed",
            extra={
                "identity_hash": decision.identity_hash,
                "limit": limiter.config.max_requests,
                "remaining": decision.headers.get(limiter.config.header_names.remaining),
            },
        )
