"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from ratelimit_api.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def capture():
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_redacts_identity_and_store_url(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.debug",
        extra={
            "identity": "203.0.113.7",
            "redis_url": "redis://:hunter2@cache:6379/0",
            "identity_hash": "ab12cd34ef56ab12",
        },
    )

    output = stream.getvalue()
    assert "203.0.113.7" not in output
    assert "hunter2" not in output
    assert "[REDACTED]" in output
    assert "ab12cd34ef56ab12" in output


def test_allows_safe_fields(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.allowed",
        extra={"identity_hash": "0f0f0f0f", "limit": 2500, "remaining": "2499", "route": "/v1/ping"},
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "rate_limit.allowed"
    assert record["level"] == "info"
    assert record["limit"] == 2500
    assert record["remaining"] == "2499"
    assert record["identity_hash"] == "0f0f0f0f"
    assert "[REDACTED]" not in stream.getvalue()


def test_redacts_nested_dicts(capture):
    logger, stream = capture

    logger.info(
        "request.headers",
        extra={"headers": {"authorization": "Bearer abc", "x-forwarded-for": "198.51.100.2", "accept": "json"}},
    )

    output = stream.getvalue()
    assert "Bearer abc" not in output
    assert "198.51.100.2" not in output
    assert "json" in output


def test_request_id_from_context(capture):
    logger, stream = capture
    set_request_id("req-123")

    logger.info("rate_limit.exceeded")

    assert json.loads(stream.getvalue())["request_id"] == "req-123"
