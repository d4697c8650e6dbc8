"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent without forcing every
    error to carry every field.
    """

    http_status: int
    retry_after_ms: int
    limit: int
    operation: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when rate limiter configuration is invalid."""


class StoreAppError(AppError):
    """Raised when a counter store operation fails (network error, timeout)."""


@dataclass
class RateLimitExceededAppError(AppError):
    """Raised for a rejected request when the limiter is configured to throw.

    Carries everything an upstream handler needs to render the rejection:
    the HTTP status, the body text (as ``message``) and the rate limit
    headers.
    """

    status_code: int = 429
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class RateLimitRejection(Exception):
    """Internal signal for a rejection rendered in place.

    Not an ``AppError``: the response is the bare body text with the rate
    limit headers, not the JSON error envelope.
    """

    body: str
    headers: dict[str, str] = field(default_factory=dict)
    status_code: int = 429

    def __post_init__(self) -> None:
        super().__init__(self.body)
