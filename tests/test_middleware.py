"""Middleware tests: request ID, rate limiting, CORS, error format."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers, make_user


class _CounterPipeline:
    def __init__(self, store: dict[str, int]) -> None:
        self.store = store
        self.ops: list[tuple[str, int]] = []

    def incrby(self, key: str, amount: int) -> None:
        self.ops.append((key, amount))

    def expire(self, key: str, seconds: int) -> None:
        pass

    async def execute(self) -> list[int]:
        results = []
        for key, amount in self.ops:
            self.store[key] = self.store.get(key, 0) + amount
            results.append(self.store[key])
        return [*results, True]


class CounterRedis:
    """Just enough of redis.asyncio.Redis for the rate limiter."""

    def __init__(self) -> None:
        self.store: dict[str, int] = {}

    def pipeline(self) -> _CounterPipeline:
        return _CounterPipeline(self.store)


@pytest.fixture
def counter_redis(monkeypatch) -> CounterRedis:
    fake = CounterRedis()
    monkeypatch.setattr("codequest.middleware.rate_limit.get_redis_optional", lambda: fake)
    return fake


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    """Without Redis requests pass through unthrottled and without headers."""
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient, counter_redis: CounterRedis) -> None:
    response = await client.get("/version")
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, counter_redis: CounterRedis) -> None:
    """101st request returns 429 with Retry-After header."""
    for _ in range(100):
        await client.get("/version")
    response = await client.get("/version")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_sandbox_endpoints_weigh_more(client: AsyncClient, counter_redis: CounterRedis) -> None:
    """A code execution request counts as three."""
    response = await client.post("/api/v1/code/execute", json={"code": "print(1)", "languageId": 28})
    assert response.status_code == 401
    assert response.headers["x-ratelimit-remaining"] == "97"


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, counter_redis: CounterRedis) -> None:
    for _ in range(150):
        response = await client.get("/health")
        assert response.status_code == 200
    assert counter_redis.store == {}


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for the web client origin."""
    response = await client.options(
        "/api/v1/challenges",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_validation_error_is_400_without_values(client: AsyncClient, db_session) -> None:
    """Malformed bodies are 400 and the submitted values are not echoed."""
    user = await make_user(db_session)
    response = await client.post(
        "/api/v1/code/execute",
        json={"code": "", "languageId": "secret-value"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Validation error"
    assert "secret-value" not in response.text
    assert {tuple(e["loc"]) for e in body["errors"]} >= {("body", "code"), ("body", "languageId")}
