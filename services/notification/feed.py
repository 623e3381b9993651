"""
services/notification/feed.py
In-app notification feed. Rows are written in the caller's transaction;
delivery (sound, browser, push) is left to clients that poll the feed.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import (
    ActorRole,
    Booking,
    Notification,
    NotificationPriority,
    NotificationType,
    utcnow,
)


# ── Templates ─────────────────────────────────────────────────

TEMPLATES = {
    NotificationType.BOOKING_CREATED: {
        "title": "New Booking Request",
        "message": "{passenger_name} needs help with {number_of_bags} bag(s) at {station}. "
                   "Booking #{booking_number}, ₹{total_price}.",
    },
    NotificationType.BOOKING_ACCEPTED: {
        "title": "Porter Assigned",
        "message": "{porter_name} accepted booking #{booking_number} and will meet you at {station}.",
    },
    NotificationType.BOOKING_DECLINED: {
        "title": "Booking Declined",
        "message": "Booking #{booking_number} was declined. Please choose another porter.",
    },
    NotificationType.BOOKING_COMPLETED: {
        "title": "Trip Completed",
        "message": "Booking #{booking_number} is complete. Total paid: ₹{total_price}.",
    },
    NotificationType.REVIEW_REQUEST: {
        "title": "How was your porter?",
        "message": "Tell us about your experience with {porter_name} on booking #{booking_number}.",
    },
}


def render_template(notification_type: NotificationType, booking: Booking) -> tuple[str, str]:
    template = TEMPLATES[notification_type]
    values = {
        "passenger_name": booking.passenger_name,
        "number_of_bags": booking.number_of_bags,
        "station": booking.station,
        "booking_number": booking.booking_number,
        "total_price": booking.total_price,
        "porter_name": booking.porter_name or "Your porter",
    }
    return template["title"], template["message"].format(**values)


# ── Writers ───────────────────────────────────────────────────

def notify(
    db: AsyncSession,
    recipient_id: str,
    recipient_type: ActorRole,
    notification_type: NotificationType,
    title: str,
    message: str,
    booking_id: Optional[uuid.UUID] = None,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        recipient_type=recipient_type,
        type=notification_type,
        title=title,
        message=message,
        booking_id=booking_id,
        priority=priority,
    )
    db.add(notification)
    return notification


def notify_porter(
    db: AsyncSession,
    booking: Booking,
    notification_type: NotificationType,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> Notification:
    title, message = render_template(notification_type, booking)
    return notify(
        db, str(booking.porter_id), ActorRole.PORTER, notification_type,
        title, message, booking.id, priority,
    )


def notify_passenger(
    db: AsyncSession,
    booking: Booking,
    notification_type: NotificationType,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> Notification:
    """Passengers are anonymous; their phone number is the recipient id."""
    title, message = render_template(notification_type, booking)
    return notify(
        db, booking.phone, ActorRole.PASSENGER, notification_type,
        title, message, booking.id, priority,
    )


# ── Readers ───────────────────────────────────────────────────

async def list_notifications(
    db: AsyncSession,
    recipient_id: str,
    recipient_type: Optional[ActorRole] = None,
    notification_type: Optional[NotificationType] = None,
    limit: int = 50,
) -> tuple[Sequence[Notification], int]:
    """Newest first, plus the unread count over the whole feed."""
    filters = [Notification.recipient_id == recipient_id]
    if recipient_type:
        filters.append(Notification.recipient_type == recipient_type)
    if notification_type:
        filters.append(Notification.type == notification_type)

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    unread = await db.scalar(
        select(func.count(Notification.id)).where(*filters, Notification.is_read.is_(False))
    )
    return result.scalars().all(), unread or 0


async def mark_read(db: AsyncSession, notification_id: uuid.UUID) -> bool:
    """Returns True if a row changed. Unknown or already-read ids are a no-op."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def mark_all_read(
    db: AsyncSession,
    recipient_id: str,
    notification_type: Optional[NotificationType] = None,
) -> int:
    query = update(Notification).where(
        Notification.recipient_id == recipient_id,
        Notification.is_read.is_(False),
    )
    if notification_type:
        query = query.where(Notification.type == notification_type)
    result = await db.execute(
        query.values(is_read=True, read_at=utcnow()).execution_options(synchronize_session=False)
    )
    return result.rowcount
