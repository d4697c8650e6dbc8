"""Human-readable durations for rate limit messages."""

from __future__ import annotations

_SECOND_MS = 1000
_MINUTE_MS = _SECOND_MS * 60
_HOUR_MS = _MINUTE_MS * 60
_DAY_MS = _HOUR_MS * 24

_UNITS: tuple[tuple[int, str], ...] = (
    (_DAY_MS, "day"),
    (_HOUR_MS, "hour"),
    (_MINUTE_MS, "minute"),
    (_SECOND_MS, "second"),
)


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def format_duration(milliseconds: int | float) -> str:
    """Render a millisecond count as long-form text.

    The value is expressed in the largest unit it reaches and rounded to a
    whole number; the unit is pluralised once the value is at least one and
    a half units.

    Examples:
        >>> format_duration(300)
        '300 ms'
        >>> format_duration(1000)
        '1 second'
        >>> format_duration(90_000)
        '2 minutes'
        >>> format_duration(3_600_000)
        '1 hour'
    """

    ms_abs = abs(milliseconds)
    for unit_ms, name in _UNITS:
        if ms_abs >= unit_ms:
            plural = "s" if ms_abs >= unit_ms * 1.5 else ""
            return f"{_round_half_up(milliseconds / unit_ms)} {name}{plural}"
    return f"{_round_half_up(milliseconds)} ms"


def default_error_message(milliseconds_until_reset: int) -> str:
    """Default 429 body: how long the caller has to wait."""

    return f"Rate limit exceeded, retry in {format_duration(milliseconds_until_reset)}."
