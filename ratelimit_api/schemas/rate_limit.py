"""Schemas for rate limit decisions and the limited demo endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field


class Outcome(str, Enum):
    """Result of evaluating one request against the limiter."""

    ACCEPT = "accept"
    REJECT = "reject"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Decision:
    """Result of a rate limit evaluation.

    Attributes:
        outcome: Whether the request may proceed, is throttled, or is denied.
        headers: Rate limit headers to apply to the response (empty for
            skipped, allow-listed and deny-listed identities).
        body: Response body text for rejected requests.
        status: HTTP status for reject (429) and forbidden (403); None on
            accept, leaving the status to downstream handlers.
        retry_after_ms: Milliseconds until the counter expires, on reject.
        identity_hash: Short hash of the resolved identity for logging; None
            when the request was skipped.
    """

    outcome: Outcome
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    status: int | None = None
    retry_after_ms: int | None = None
    identity_hash: str | None = None


class PingResponse(BaseModel):
    """Response of the rate limited ping endpoint."""

    message: str = Field(..., description="Static greeting.")
    hits: int = Field(..., description="Requests served by this process so far.")
