"""Demo endpoint behind the rate limiter.

Each reply carries the X-RateLimit-* headers; once an identity spends its
budget for the window the dependency answers 429 before the handler runs.
"""

from __future__ import annotations

import itertools

from fastapi import APIRouter, Depends

from ratelimit_api.core.rate_limit import enforce_rate_limit
from ratelimit_api.schemas.rate_limit import PingResponse

router = APIRouter(tags=["Ping"])

_hits = itertools.count(1)


@router.get(
    "/ping",
    response_model=PingResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def ping() -> PingResponse:
    """Rate limited endpoint.

    Each call counts against the caller's quota; the response carries the
    X-RateLimit-* headers. Once the quota is spent the call is rejected with
    429 before this handler runs.
    """

    return PingResponse(message="pong", hits=next(_hits))
