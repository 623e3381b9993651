"""
tests/test_app.py
Tests for the application shell: health, tracing headers and
throttling of anonymous traffic.
"""

import pytest
from httpx import AsyncClient

import config.redis_client as redis_module
from config.settings import settings
from shared.models.models import Porter
from tests.conftest import auth_headers


@pytest.fixture
def throttled(monkeypatch, redis):
    monkeypatch.setattr(redis_module, "redis_client", redis)
    monkeypatch.setattr(settings, "RATE_LIMIT_UNAUTH_PER_MINUTE", 2)


# ── Shell ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == settings.APP_NAME


@pytest.mark.asyncio
async def test_health_reports_missing_redis(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 503
    body = response.json()
    assert body["database"] == "ok"
    assert body["redis"] == "error"
    assert body["status"] == "degraded"


@pytest.mark.asyncio
async def test_health_ok(client: AsyncClient, monkeypatch, redis):
    monkeypatch.setattr(redis_module, "redis_client", redis)
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "trace-42"})
    assert response.headers["X-Request-ID"] == "trace-42"
    assert response.headers["X-Process-Time"].endswith("ms")

    generated = await client.get("/")
    assert generated.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_domain_errors_use_detail_body(client: AsyncClient):
    response = await client.get("/api/bookings/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert set(response.json()) == {"detail"}


# ── Throttling ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_anonymous_requests_are_throttled(client: AsyncClient, throttled):
    assert (await client.get("/")).status_code == 200
    assert (await client.get("/")).status_code == 200

    blocked = await client.get("/")
    assert blocked.status_code == 429
    assert blocked.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_health_is_never_throttled(client: AsyncClient, throttled):
    for _ in range(4):
        assert (await client.get("/health")).status_code == 200


@pytest.mark.asyncio
async def test_bearer_requests_skip_throttle(client: AsyncClient, throttled, porter: Porter):
    headers = auth_headers(porter)
    for _ in range(4):
        response = await client.get("/api/porter/profile", headers=headers)
        assert response.status_code == 200
