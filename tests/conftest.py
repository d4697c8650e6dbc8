"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any ratelimit_api import so the
global settings object is built for the test run (in-memory store, no
Redis connection).
"""

import asyncio
import os
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from ratelimit_api.adapters.store.in_memory import InMemoryCounterStore  # noqa: E402


def make_request(host: str | None = "10.0.0.1", headers: dict[str, str] | None = None) -> SimpleNamespace:
    """Minimal stand-in for a Starlette request: ``client.host`` and ``headers``."""

    client = SimpleNamespace(host=host) if host else None
    return SimpleNamespace(client=client, headers=dict(headers or {}))


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1000.0)


@pytest.fixture
def store(clock: Mock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)
