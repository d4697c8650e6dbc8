from __future__ import annotations

from fastapi import APIRouter

from ratelimit_api.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Not rate limited, so load balancers can probe it freely. Reports whether
    limiting is active and which counter store backs it.

    Returns:
        dict: "status" set to "ok" plus the rate limit mode.
    """

    return {
        "status": "ok",
        "rate_limit": {
            "enabled": settings.rate_limit.enabled,
            "backend": settings.rate_limit.backend,
        },
    }
