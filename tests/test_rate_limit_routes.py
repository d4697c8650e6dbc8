"""HTTP-level tests for the rate limit dependency.

The limiter is swapped for one backed by the in-memory store so no Redis
server is needed. TestClient requests come from the "testclient" host.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from conftest import run

from ratelimit_api.adapters.store.in_memory import InMemoryCounterStore
from ratelimit_api.core import rate_limit as rate_limit_module
from ratelimit_api.core.app_factory import create_app
from ratelimit_api.core.errors import StoreAppError
from ratelimit_api.services.rate_limit_config import RateLimitConfig
from ratelimit_api.services.rate_limiter import RateLimiter, hash_identity


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def use_limiter(monkeypatch: pytest.MonkeyPatch, clock: Mock, store: InMemoryCounterStore):
    """Install a limiter built from the given config for the test."""

    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "enabled", True)

    def install(**config_kwargs) -> RateLimiter:
        limiter = RateLimiter(RateLimitConfig(**config_kwargs), store, clock=clock)

        async def get_rate_limiter() -> RateLimiter:
            return limiter

        monkeypatch.setattr(rate_limit_module, "get_rate_limiter", get_rate_limiter)
        return limiter

    return install


class TestInPlaceRejection:
    def test_blocks_after_limit(self, client: TestClient, use_limiter) -> None:
        use_limiter(max_requests=2, window_ms=60_000)

        first = client.get("/v1/ping")
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Reset"] == "1060"
        assert first.json()["message"] == "pong"

        assert client.get("/v1/ping").headers["X-RateLimit-Remaining"] == "0"

        blocked = client.get("/v1/ping")
        assert blocked.status_code == 429
        assert blocked.text == "Rate limit exceeded, retry in 1 minute."
        assert blocked.headers["content-type"].startswith("text/plain")
        assert blocked.headers["X-RateLimit-Remaining"] == "0"
        assert blocked.headers["Retry-After"] == "1060"

    def test_rejected_request_never_reaches_handler(self, client: TestClient, use_limiter) -> None:
        use_limiter(max_requests=1)

        hits = client.get("/v1/ping").json()["hits"]
        assert client.get("/v1/ping").status_code == 429

        use_limiter(max_requests=1, allowlist={"testclient"})
        assert client.get("/v1/ping").json()["hits"] == hits + 1

    def test_window_reset_readmits(self, client: TestClient, use_limiter, clock: Mock) -> None:
        use_limiter(max_requests=1, window_ms=300)

        assert client.get("/v1/ping").status_code == 200
        assert client.get("/v1/ping").status_code == 429

        clock.return_value = 1000.5
        resumed = client.get("/v1/ping")
        assert resumed.status_code == 200
        assert resumed.headers["X-RateLimit-Remaining"] == "0"


class TestThrowOnReject:
    def test_raises_structured_error(self, client: TestClient, use_limiter) -> None:
        use_limiter(max_requests=1, window_ms=60_000, throw_on_reject=True, error_message="Slow down")

        assert client.get("/v1/ping").status_code == 200
        blocked = client.get("/v1/ping")

        assert blocked.status_code == 429
        error = blocked.json()["error"]
        assert error["code"] == "rate_limit_exceeded"
        assert error["message"] == "Slow down"
        assert error["details"]["retry_after_ms"] == 60_000
        assert blocked.headers["X-RateLimit-Remaining"] == "0"
        assert blocked.headers["X-RateLimit-Limit"] == "1"
        assert blocked.headers["Retry-After"] == blocked.headers["X-RateLimit-Reset"]


class TestLists:
    def test_denylisted_client_gets_403(self, client: TestClient, use_limiter) -> None:
        use_limiter(denylist={"testclient"})

        response = client.get("/v1/ping")

        assert response.status_code == 403
        assert "X-RateLimit-Remaining" not in response.headers

    def test_allowlisted_client_has_no_headers(self, client: TestClient, use_limiter, store) -> None:
        use_limiter(max_requests=1, allowlist={"testclient"})

        for _ in range(3):
            response = client.get("/v1/ping")
            assert response.status_code == 200
            assert "X-RateLimit-Remaining" not in response.headers

        assert run(store.get("limit:testclient:count")) is None


def test_custom_identity_header(client: TestClient, use_limiter, monkeypatch: pytest.MonkeyPatch) -> None:
    logger = Mock()
    monkeypatch.setattr(rate_limit_module, "logger", logger)
    use_limiter(max_requests=1, identity_extractor=lambda request: request.headers.get("foo"))

    assert client.get("/v1/ping", headers={"foo": "bar"}).status_code == 200
    assert client.get("/v1/ping", headers={"foo": "buz"}).status_code == 200
    assert client.get("/v1/ping", headers={"foo": "buz"}).status_code == 429

    skipped = client.get("/v1/ping")
    assert skipped.status_code == 200
    assert "X-RateLimit-Remaining" not in skipped.headers

    exceeded = logger.warning.call_args
    assert exceeded.args == ("rate_limit.exceeded",)
    assert exceeded.kwargs["extra"]["identity_hash"] == hash_identity("buz")


def test_store_failure_is_opaque_500(client: TestClient, monkeypatch: pytest.MonkeyPatch, clock: Mock) -> None:
    store = AsyncMock()
    store.get.side_effect = StoreAppError(
        code="store_unavailable",
        message="Counter store get failed",
        details={"operation": "get"},
    )
    limiter = RateLimiter(RateLimitConfig(), store, clock=clock)
    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "enabled", True)
    async def get_rate_limiter() -> RateLimiter:
        return limiter

    monkeypatch.setattr(rate_limit_module, "get_rate_limiter", get_rate_limiter)

    response = client.get("/v1/ping")

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "store_unavailable"
    assert "Counter store" not in error["message"]
    assert "details" not in error


def test_disabled_limiter_is_bypassed(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "enabled", False)

    async def fail() -> RateLimiter:
        raise AssertionError("limiter should not be built")

    monkeypatch.setattr(rate_limit_module, "get_rate_limiter", fail)

    response = client.get("/v1/ping")

    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers


def test_get_rate_limiter_rebuilds_on_config_change(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "backend", "memory")
    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "max_requests", 3)

    first = run(rate_limit_module.get_rate_limiter())
    assert run(rate_limit_module.get_rate_limiter()) is first
    assert isinstance(first.store, InMemoryCounterStore)
    assert first.config.max_requests == 3

    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "max_requests", 4)
    second = run(rate_limit_module.get_rate_limiter())

    assert second is not first
    assert second.config.max_requests == 4


def test_rebuild_closes_previous_redis_client(monkeypatch: pytest.MonkeyPatch) -> None:
    run(rate_limit_module.close_rate_limiter())
    first_client, second_client = AsyncMock(), AsyncMock()
    from_url = Mock(side_effect=[first_client, second_client])
    monkeypatch.setattr(rate_limit_module.redis, "from_url", from_url)
    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "backend", "redis")
    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "max_requests", 3)

    run(rate_limit_module.get_rate_limiter())
    run(rate_limit_module.get_rate_limiter())
    first_client.aclose.assert_not_awaited()

    monkeypatch.setattr(rate_limit_module.settings.rate_limit, "max_requests", 4)
    rebuilt = run(rate_limit_module.get_rate_limiter())

    assert from_url.call_count == 2
    assert rebuilt.store.client is second_client
    first_client.aclose.assert_awaited_once()
    second_client.aclose.assert_not_awaited()

    run(rate_limit_module.close_rate_limiter())
    second_client.aclose.assert_awaited_once()
