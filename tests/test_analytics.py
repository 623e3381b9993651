"""
tests/test_analytics.py
Tests for visit tracking and the admin dashboard.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Porter
from tests.conftest import admin_headers, auth_headers, booking_payload, set_status


def _visit(session_id: str = "sess-1", **overrides) -> dict:
    payload = {
        "sessionId": session_id,
        "page": "/",
        "userAgent": "Mozilla/5.0",
        "device": "mobile",
        "browser": "Chrome",
        "os": "Android",
    }
    payload.update(overrides)
    return payload


# ── Tracking ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_track_visit_counts_page_views(client: AsyncClient):
    first = await client.post("/api/analytics/visit", json=_visit())
    assert first.status_code == 200
    assert first.json() == {"success": True, "sessionId": "sess-1", "pageViews": 1}

    second = await client.post("/api/analytics/visit", json=_visit(page="/book"))
    assert second.json()["pageViews"] == 2


@pytest.mark.asyncio
async def test_track_visit_rejects_missing_session(client: AsyncClient):
    response = await client.post("/api/analytics/visit", json={"page": "/"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_link_booking_to_visit(client: AsyncClient, booking: dict):
    await client.post("/api/analytics/visit", json=_visit())

    response = await client.patch(
        "/api/analytics/visit/sess-1/booking", json={"bookingId": booking["id"]}
    )
    assert response.json() == {"success": True}


@pytest.mark.asyncio
async def test_link_booking_to_unknown_session(client: AsyncClient):
    response = await client.patch(
        "/api/analytics/visit/nope/booking", json={"bookingId": str(uuid.uuid4())}
    )
    assert response.status_code == 200
    assert response.json() == {"success": False}


def _fail_next_commit(monkeypatch) -> None:
    """The next commit raises; later ones go through."""
    real_commit = AsyncSession.commit
    failed = []

    async def commit(session):
        if not failed:
            failed.append(session)
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        return await real_commit(session)

    monkeypatch.setattr(AsyncSession, "commit", commit)


@pytest.mark.asyncio
async def test_visit_commit_failure_is_not_an_error(client: AsyncClient, monkeypatch):
    _fail_next_commit(monkeypatch)
    response = await client.post("/api/analytics/visit", json=_visit())
    assert response.status_code == 200
    assert response.json() == {"success": False}


@pytest.mark.asyncio
async def test_booking_link_commit_failure_is_not_an_error(
    client: AsyncClient, booking: dict, monkeypatch
):
    await client.post("/api/analytics/visit", json=_visit())

    _fail_next_commit(monkeypatch)
    response = await client.patch(
        "/api/analytics/visit/sess-1/booking", json={"bookingId": booking["id"]}
    )
    assert response.status_code == 200
    assert response.json() == {"success": False}


# ── Dashboard ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_dashboard_numbers(client: AsyncClient, porter: Porter, other_porter: Porter):
    headers = auth_headers(porter)
    await client.post("/api/analytics/visit", json=_visit("a"))
    await client.post("/api/analytics/visit", json=_visit("a", page="/book"))
    await client.post("/api/analytics/visit", json=_visit("b", device="desktop", browser="Firefox"))

    done = (await client.post("/api/bookings", json=booking_payload(porter))).json()
    await client.post("/api/bookings", json=booking_payload(porter))
    await set_status(client, done["id"], "accepted", headers)
    await set_status(client, done["id"], "completed", headers)
    await client.patch("/api/analytics/visit/a/booking", json={"bookingId": done["id"]})
    await client.post(
        "/api/reviews",
        json={
            "bookingId": done["id"],
            "userName": "Asha",
            "rating": 4,
            "comment": "Good",
            "experience": "good",
        },
    )

    response = await client.get("/api/analytics/dashboard", headers=admin_headers())
    assert response.status_code == 200
    data = response.json()
    assert data["totalVisits"] == 2
    assert data["totalPageViews"] == 3
    assert data["visitsToday"] == 2
    assert data["convertedSessions"] == 1
    assert data["conversionRate"] == 50.0
    assert data["deviceBreakdown"] == {"mobile": 1, "desktop": 1}
    assert data["browserBreakdown"] == {"Chrome": 1, "Firefox": 1}
    assert data["totalBookings"] == 2
    assert data["bookingsByStatus"] == {"completed": 1, "pending": 1}
    assert data["totalRevenue"] == 99
    assert data["totalPorters"] == 2
    assert data["onlinePorters"] == 2
    assert data["avgRating"] == 4.0


@pytest.mark.asyncio
async def test_dashboard_empty(client: AsyncClient):
    data = (await client.get("/api/analytics/dashboard", headers=admin_headers())).json()
    assert data["totalVisits"] == 0
    assert data["conversionRate"] == 0.0
    assert data["bookingsByStatus"] == {}
    assert data["avgRating"] == 0.0


@pytest.mark.asyncio
async def test_dashboard_is_admin_only(client: AsyncClient, porter: Porter):
    response = await client.get("/api/analytics/dashboard", headers=auth_headers(porter))
    assert response.status_code == 403
