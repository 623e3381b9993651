"""
tests/test_tasks.py
Tests for the periodic Celery housekeeping tasks, run against a
synchronous in-memory SQLite database.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config.database import Base
from shared.models.models import (
    Booking,
    BookingStatus,
    Notification,
    NotificationType,
    Porter,
    Review,
    ReviewExperience,
    utcnow,
)
from tasks.booking_tasks import (
    DatabaseTask,
    mark_idle_porters_offline,
    queue_review_requests,
    send_review_requests,
    sync_database_url,
    take_idle_porters_offline,
)
from tests.conftest import PORTER_PASSWORD_HASH


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def porter(session) -> Porter:
    porter = Porter(
        name="Ravi Kumar",
        phone="9000000001",
        badge_number="MAS-101",
        station="Chennai Central",
        password_hash=PORTER_PASSWORD_HASH,
        is_online=True,
        last_seen_at=utcnow(),
    )
    session.add(porter)
    session.commit()
    return porter


def _booking(porter: Porter, status=BookingStatus.COMPLETED, completed_minutes_ago=None) -> Booking:
    completed_at = None
    if completed_minutes_ago is not None:
        completed_at = utcnow() - timedelta(minutes=completed_minutes_ago)
    return Booking(
        booking_number=f"CM-2026-{uuid.uuid4().hex[:5].upper()}",
        porter_id=porter.id,
        porter_name=porter.name,
        passenger_name="Asha Verma",
        phone="9123456780",
        pnr="1234567890",
        station=porter.station,
        number_of_bags=2,
        weight=18,
        base_price=99,
        total_price=99,
        status=status,
        completed_at=completed_at,
    )


def _review_requests(session: Session) -> list:
    return session.execute(
        select(Notification).where(Notification.type == NotificationType.REVIEW_REQUEST)
    ).scalars().all()


# ── Review Requests ───────────────────────────────────────────

def test_review_request_for_finished_trip(session, porter):
    booking = _booking(porter, completed_minutes_ago=120)
    session.add(booking)
    session.commit()

    assert queue_review_requests(session) == 1

    (request,) = _review_requests(session)
    assert request.recipient_id == booking.phone
    assert request.booking_id == booking.id
    assert porter.name in request.message


def test_review_request_sent_only_once(session, porter):
    session.add(_booking(porter, completed_minutes_ago=120))
    session.commit()

    assert queue_review_requests(session) == 1
    assert queue_review_requests(session) == 0
    assert len(_review_requests(session)) == 1


def test_review_request_skips_recent_and_reviewed(session, porter):
    recent = _booking(porter, completed_minutes_ago=5)
    pending = _booking(porter, status=BookingStatus.PENDING)
    reviewed = _booking(porter, completed_minutes_ago=120)
    session.add_all([recent, pending, reviewed])
    session.flush()
    session.add(
        Review(
            booking_id=reviewed.id,
            user_name="Asha",
            rating=5,
            comment="Great",
            experience=ReviewExperience.EXCELLENT,
            porter_rating=5,
            porter_id=porter.id,
            porter_name=porter.name,
        )
    )
    session.commit()

    assert queue_review_requests(session) == 0


# ── Idle Porters ──────────────────────────────────────────────

def test_idle_porters_go_offline(session, porter):
    idle = Porter(
        name="Idle", phone="9000000002", badge_number="MAS-102", station="Chennai Central",
        password_hash=PORTER_PASSWORD_HASH, is_online=True,
        last_seen_at=utcnow() - timedelta(hours=2),
    )
    never_seen = Porter(
        name="Never Seen", phone="9000000003", badge_number="MAS-103", station="Chennai Central",
        password_hash=PORTER_PASSWORD_HASH, is_online=True,
    )
    session.add_all([idle, never_seen])
    session.commit()

    assert take_idle_porters_offline(session) == 2
    assert take_idle_porters_offline(session) == 0

    online = session.execute(select(Porter.id).where(Porter.is_online.is_(True))).scalars().all()
    assert online == [porter.id]


# ── Celery Wiring ─────────────────────────────────────────────

def test_sync_database_url():
    assert sync_database_url("postgresql+asyncpg://u:p@db/app") == "postgresql+psycopg2://u:p@db/app"
    assert sync_database_url("sqlite+aiosqlite:///./app.db") == "sqlite:///./app.db"


def test_tasks_run_eagerly(engine, session, porter, monkeypatch):
    monkeypatch.setattr(DatabaseTask, "_sessionmaker", sessionmaker(bind=engine))
    session.add(_booking(porter, completed_minutes_ago=120))
    session.commit()

    assert send_review_requests.apply().get() == {"queued": 1}
    assert mark_idle_porters_offline.apply().get() == {"offline": 0}
    assert session.scalar(select(func.count(Notification.id))) == 1
