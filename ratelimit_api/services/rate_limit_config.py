"""Typed, immutable configuration for the rate limiter.

``RateLimitConfig`` fills every default deterministically; explicit values
override defaults and nothing is merged at runtime. Invalid values are
rejected at construction with ``ValidationAppError`` so misconfiguration
fails at startup rather than per request.
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Any, Callable

from ratelimit_api.core.config import RateLimitSettings
from ratelimit_api.core.errors import ValidationAppError
from ratelimit_api.utils.duration import default_error_message

# Identity extractors return None to skip rate limiting for a request.
IdentityExtractor = Callable[[Any], Hashable | None]
ErrorMessage = str | Callable[[int], str]

DEFAULT_WINDOW_MS = 3_600_000
DEFAULT_MAX_REQUESTS = 2500
DEFAULT_KEY_PREFIX = "limit"


def client_address(request: Any) -> str:
    """Default identity: the source address of the request."""

    client = getattr(request, "client", None)
    return client.host if client else "unknown"


def header_identity(header_name: str) -> IdentityExtractor:
    """Build an extractor reading the identity from a request header.

    Requests without the header fall back to the client address so that
    omitting the header cannot bypass the limit.
    """

    def extract(request: Any) -> str:
        return request.headers.get(header_name) or client_address(request)

    return extract


def parse_identity_list(value: str | None) -> frozenset[str]:
    """Parse a comma-separated identity list.

    Examples:
        >>> sorted(parse_identity_list("10.0.0.1, 10.0.0.2"))
        ['10.0.0.1', '10.0.0.2']
        >>> parse_identity_list(None)
        frozenset()
    """
    if not value:
        return frozenset()
    return frozenset(item.strip() for item in value.split(",") if item.strip())


def _invalid(field_name: str, message: str) -> None:
    raise ValidationAppError(
        code="invalid_rate_limit_config",
        message=message,
        details={"context": {"field": field_name}},
    )


@dataclass(frozen=True)
class HeaderNames:
    """Wire names of the three rate limit headers."""

    remaining: str = "X-RateLimit-Remaining"
    reset: str = "X-RateLimit-Reset"
    total: str = "X-RateLimit-Limit"


@dataclass(frozen=True)
class RateLimitConfig:
    """Limiter parameters.

    Attributes:
        window_ms: Length of the window in milliseconds.
        max_requests: Ceiling per identity per window.
        key_prefix: Namespace for store keys.
        identity_extractor: Maps a request to an identity, or None to skip.
        allowlist: Identities that are never limited.
        denylist: Identities that are always rejected with 403.
        header_names: Wire names of the rate limit headers.
        throw_on_reject: Surface rejections as raised errors instead of an
            in-place 429 response.
        error_message: Static 429 body, or a function of the milliseconds
            until reset producing one.
    """

    window_ms: int = DEFAULT_WINDOW_MS
    max_requests: int = DEFAULT_MAX_REQUESTS
    key_prefix: str = DEFAULT_KEY_PREFIX
    identity_extractor: IdentityExtractor = client_address
    allowlist: frozenset[Hashable] = field(default_factory=frozenset)
    denylist: frozenset[Hashable] = field(default_factory=frozenset)
    header_names: HeaderNames = field(default_factory=HeaderNames)
    throw_on_reject: bool = False
    error_message: ErrorMessage = default_error_message

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            _invalid("window_ms", "window_ms must be >= 1")
        if self.max_requests < 1:
            _invalid("max_requests", "max_requests must be >= 1")
        if not callable(self.identity_extractor):
            _invalid("identity_extractor", "identity_extractor must be callable")
        if not isinstance(self.error_message, str) and not callable(self.error_message):
            _invalid("error_message", "error_message must be a string or a callable")
        # Accept any iterable for the lists while keeping the config hashable
        object.__setattr__(self, "allowlist", frozenset(self.allowlist))
        object.__setattr__(self, "denylist", frozenset(self.denylist))

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> "RateLimitConfig":
        """Build the limiter configuration from environment settings."""

        extractor: IdentityExtractor = client_address
        if rate_limit_settings.identity_header:
            extractor = header_identity(rate_limit_settings.identity_header)

        error_message: ErrorMessage = default_error_message
        if rate_limit_settings.error_message:
            error_message = rate_limit_settings.error_message

        return cls(
            window_ms=rate_limit_settings.window_ms,
            max_requests=rate_limit_settings.max_requests,
            key_prefix=rate_limit_settings.key_prefix or DEFAULT_KEY_PREFIX,
            identity_extractor=extractor,
            allowlist=parse_identity_list(rate_limit_settings.allowlist),
            denylist=parse_identity_list(rate_limit_settings.denylist),
            header_names=HeaderNames(
                remaining=rate_limit_settings.header_remaining,
                reset=rate_limit_settings.header_reset,
                total=rate_limit_settings.header_total,
            ),
            throw_on_reject=rate_limit_settings.throw_on_reject,
            error_message=error_message,
        )

    def render_error_message(self, milliseconds_until_reset: int) -> str:
        if callable(self.error_message):
            return self.error_message(milliseconds_until_reset)
        return self.error_message
