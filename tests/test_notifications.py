"""
tests/test_notifications.py
Tests for the notification feed: listing, unread counts and read marks.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification import feed
from shared.models.models import ActorRole, NotificationType, Porter
from tests.conftest import auth_headers, booking_payload, set_status

PASSENGER_PHONE = "9123456780"


async def _seed(db: AsyncSession, recipient_id: str, count: int, **kwargs) -> list:
    rows = []
    for i in range(count):
        rows.append(feed.notify(
            db,
            recipient_id,
            kwargs.get("recipient_type", ActorRole.PASSENGER),
            kwargs.get("notification_type", NotificationType.BOOKING_ACCEPTED),
            f"Title {i}",
            f"Message {i}",
        ))
        # One commit per row keeps created_at strictly increasing
        await db.commit()
    return rows


# ── Listing ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_notifications_newest_first(client: AsyncClient, db: AsyncSession):
    await _seed(db, PASSENGER_PHONE, 3)

    response = await client.get(f"/api/notifications/{PASSENGER_PHONE}")
    assert response.status_code == 200
    data = response.json()
    assert data["unreadCount"] == 3
    assert [n["title"] for n in data["notifications"]] == ["Title 2", "Title 1", "Title 0"]
    assert all(n["isRead"] is False for n in data["notifications"])


@pytest.mark.asyncio
async def test_list_is_scoped_to_recipient(client: AsyncClient, db: AsyncSession):
    await _seed(db, PASSENGER_PHONE, 2)
    await _seed(db, "9988776655", 1)

    data = (await client.get("/api/notifications/9988776655")).json()
    assert data["unreadCount"] == 1
    assert len(data["notifications"]) == 1


@pytest.mark.asyncio
async def test_filter_by_type_and_user_type(client: AsyncClient, db: AsyncSession):
    await _seed(db, PASSENGER_PHONE, 1, notification_type=NotificationType.BOOKING_ACCEPTED)
    await _seed(db, PASSENGER_PHONE, 2, notification_type=NotificationType.REVIEW_REQUEST)

    by_type = (await client.get(
        f"/api/notifications/{PASSENGER_PHONE}", params={"type": "review_request"}
    )).json()
    assert len(by_type["notifications"]) == 2
    assert by_type["unreadCount"] == 2

    as_porter = (await client.get(
        f"/api/notifications/{PASSENGER_PHONE}", params={"userType": "porter"}
    )).json()
    assert as_porter["notifications"] == []
    assert as_porter["unreadCount"] == 0


@pytest.mark.asyncio
async def test_limit_does_not_change_unread_count(client: AsyncClient, db: AsyncSession):
    await _seed(db, PASSENGER_PHONE, 4)

    data = (await client.get(f"/api/notifications/{PASSENGER_PHONE}", params={"limit": 2})).json()
    assert len(data["notifications"]) == 2
    assert data["unreadCount"] == 4


# ── Read Marks ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_read(client: AsyncClient, db: AsyncSession):
    first, _ = await _seed(db, PASSENGER_PHONE, 2)

    response = await client.patch(f"/api/notifications/{first.id}/read")
    assert response.status_code == 200

    data = (await client.get(f"/api/notifications/{PASSENGER_PHONE}")).json()
    assert data["unreadCount"] == 1
    read = next(n for n in data["notifications"] if n["id"] == str(first.id))
    assert read["isRead"] is True
    assert read["readAt"] is not None


@pytest.mark.asyncio
async def test_mark_read_is_idempotent(client: AsyncClient, db: AsyncSession):
    (notification,) = await _seed(db, PASSENGER_PHONE, 1)

    first = await client.patch(f"/api/notifications/{notification.id}/read")
    read_at = (await client.get(f"/api/notifications/{PASSENGER_PHONE}")).json()["notifications"][0]["readAt"]
    second = await client.patch(f"/api/notifications/{notification.id}/read")

    assert first.status_code == second.status_code == 200
    # The first read time is kept
    again = (await client.get(f"/api/notifications/{PASSENGER_PHONE}")).json()["notifications"][0]
    assert again["readAt"] == read_at


@pytest.mark.asyncio
async def test_mark_unknown_notification_read(client: AsyncClient):
    response = await client.patch(f"/api/notifications/{uuid.uuid4()}/read")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_mark_all_read(client: AsyncClient, db: AsyncSession):
    await _seed(db, PASSENGER_PHONE, 3)
    await _seed(db, "9988776655", 1)

    response = await client.patch(f"/api/notifications/{PASSENGER_PHONE}/read-all")
    assert response.status_code == 200
    assert response.json()["message"].startswith("3 ")

    assert (await client.get(f"/api/notifications/{PASSENGER_PHONE}")).json()["unreadCount"] == 0
    # Other recipients are untouched
    assert (await client.get("/api/notifications/9988776655")).json()["unreadCount"] == 1


@pytest.mark.asyncio
async def test_mark_all_read_by_type(client: AsyncClient, db: AsyncSession):
    await _seed(db, PASSENGER_PHONE, 1, notification_type=NotificationType.BOOKING_ACCEPTED)
    await _seed(db, PASSENGER_PHONE, 1, notification_type=NotificationType.REVIEW_REQUEST)

    await client.patch(
        f"/api/notifications/{PASSENGER_PHONE}/read-all", params={"type": "review_request"}
    )
    data = (await client.get(f"/api/notifications/{PASSENGER_PHONE}")).json()
    assert data["unreadCount"] == 1
    newest, oldest = data["notifications"]
    assert (newest["type"], newest["isRead"]) == ("review_request", True)
    assert (oldest["type"], oldest["isRead"]) == ("booking_accepted", False)


# ── Booking Events ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_booking_events_reach_both_sides(client: AsyncClient, porter: Porter):
    booking = (await client.post("/api/bookings", json=booking_payload(porter))).json()
    headers = auth_headers(porter)
    await set_status(client, booking["id"], "accepted", headers)
    await set_status(client, booking["id"], "completed", headers)

    porter_feed = (await client.get(
        f"/api/notifications/{porter.id}", params={"userType": "porter"}
    )).json()
    assert [n["type"] for n in porter_feed["notifications"]] == ["booking_created"]

    passenger_feed = (await client.get(
        f"/api/notifications/{PASSENGER_PHONE}", params={"userType": "passenger"}
    )).json()
    assert [n["type"] for n in passenger_feed["notifications"]] == [
        "booking_completed",
        "booking_accepted",
    ]
    assert passenger_feed["unreadCount"] == 2


def test_render_template_fills_booking_fields():
    class _Booking:
        passenger_name = "Asha"
        number_of_bags = 2
        station = "Chennai Central"
        booking_number = "CM-2026-ABCDE"
        total_price = 99
        porter_name = None

    title, message = feed.render_template(NotificationType.BOOKING_CREATED, _Booking())
    assert title == "New Booking Request"
    assert message == (
        "Asha needs help with 2 bag(s) at Chennai Central. Booking #CM-2026-ABCDE, ₹99."
    )

    _, message = feed.render_template(NotificationType.BOOKING_ACCEPTED, _Booking())
    assert message.startswith("Your porter accepted booking #CM-2026-ABCDE")
