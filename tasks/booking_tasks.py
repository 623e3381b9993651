"""
tasks/booking_tasks.py
Periodic housekeeping for bookings and porters.

All tasks are idempotent: running twice has no side effect.
The work functions take a session so they can run outside Celery.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from celery import Task
from sqlalchemy import create_engine, exists, select, update
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from services.notification.feed import render_template
from shared.models.models import (
    ActorRole,
    Booking,
    BookingStatus,
    Notification,
    NotificationType,
    Porter,
    Review,
    utcnow,
)
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


# ── Base Task with DB session ──────────────────────────────────────────────────

def sync_database_url(url: str) -> str:
    """Swap the async driver for its sync counterpart."""
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


class DatabaseTask(Task):
    """Base class that provides a synchronous DB session for tasks."""
    abstract = True
    _sessionmaker = None

    def get_session(self) -> Session:
        if DatabaseTask._sessionmaker is None:
            engine = create_engine(sync_database_url(settings.DATABASE_URL), pool_pre_ping=True)
            DatabaseTask._sessionmaker = sessionmaker(bind=engine)
        return DatabaseTask._sessionmaker()


# ── Work Functions ─────────────────────────────────────────────────────────────

def queue_review_requests(session: Session, now: Optional[datetime] = None) -> int:
    """
    One review_request notification per completed, unreviewed booking
    older than REVIEW_REQUEST_DELAY_MINUTES. Returns how many were created.
    """
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.REVIEW_REQUEST_DELAY_MINUTES)

    already_reviewed = exists().where(Review.booking_id == Booking.id)
    already_asked = exists().where(
        Notification.booking_id == Booking.id,
        Notification.type == NotificationType.REVIEW_REQUEST,
    )
    bookings = session.execute(
        select(Booking).where(
            Booking.status == BookingStatus.COMPLETED,
            Booking.completed_at <= cutoff,
            ~already_reviewed,
            ~already_asked,
        )
    ).scalars().all()

    for booking in bookings:
        title, message = render_template(NotificationType.REVIEW_REQUEST, booking)
        session.add(
            Notification(
                recipient_id=booking.phone,
                recipient_type=ActorRole.PASSENGER,
                type=NotificationType.REVIEW_REQUEST,
                title=title,
                message=message,
                booking_id=booking.id,
            )
        )
    session.commit()
    return len(bookings)


def take_idle_porters_offline(session: Session, now: Optional[datetime] = None) -> int:
    """Online porters not seen for PORTER_IDLE_OFFLINE_MINUTES go offline."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.PORTER_IDLE_OFFLINE_MINUTES)

    result = session.execute(
        update(Porter)
        .where(
            Porter.is_online.is_(True),
            (Porter.last_seen_at.is_(None)) | (Porter.last_seen_at < cutoff),
        )
        .values(is_online=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount


# ── Celery Tasks ───────────────────────────────────────────────────────────────

@celery_app.task(bind=True, base=DatabaseTask, max_retries=3, default_retry_delay=60)
def send_review_requests(self):
    db = self.get_session()
    try:
        count = queue_review_requests(db)
        logger.info(f"send_review_requests: queued {count} review request(s)")
        return {"queued": count}
    except Exception as e:
        db.rollback()
        logger.exception(f"send_review_requests failed: {e}")
        raise self.retry(exc=e)
    finally:
        db.close()


@celery_app.task(bind=True, base=DatabaseTask, max_retries=3, default_retry_delay=60)
def mark_idle_porters_offline(self):
    db = self.get_session()
    try:
        count = take_idle_porters_offline(db)
        if count:
            logger.info(f"mark_idle_porters_offline: {count} porter(s) set offline")
        return {"offline": count}
    except Exception as e:
        db.rollback()
        logger.exception(f"mark_idle_porters_offline failed: {e}")
        raise self.retry(exc=e)
    finally:
        db.close()
