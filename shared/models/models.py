"""
shared/models/models.py
All SQLAlchemy ORM models for the CoolieMate platform.
UUID primary keys generated in Python so the schema runs on any backend.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enumerations ──────────────────────────────────────────────

class BookingStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class ActorRole(str, PyEnum):
    PASSENGER = "passenger"
    PORTER = "porter"
    ADMIN = "admin"


class NotificationType(str, PyEnum):
    BOOKING_CREATED = "booking_created"
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_DECLINED = "booking_declined"
    BOOKING_COMPLETED = "booking_completed"
    REVIEW_REQUEST = "review_request"


class NotificationPriority(str, PyEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ReviewExperience(str, PyEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"


def _values(enum_cls):
    return [member.value for member in enum_cls]


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


# ── Models ────────────────────────────────────────────────────

class Porter(TimestampMixin, Base):
    """Registered porter. Phone is the login identifier."""
    __tablename__ = "porters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    badge_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    station: Mapped[str] = mapped_column(String(150), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Rating (denormalized from reviews)
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_trips: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_online: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    experience: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    specialization: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    languages: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    bookings: Mapped[List["Booking"]] = relationship(
        back_populates="porter", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_porters_station_online", "station", "is_online"),
    )

    def __repr__(self) -> str:
        return f"<Porter {self.badge_number} ({self.station})>"


class Booking(TimestampMixin, Base):
    """
    A passenger's request for porter assistance.
    Status transitions: pending → accepted → completed, pending → declined.
    """
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    porter_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("porters.id", ondelete="SET NULL"), nullable=True
    )
    porter_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Passenger
    passenger_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(10), nullable=False)

    # Journey (prefilled from PNR lookup)
    pnr: Mapped[str] = mapped_column(String(10), nullable=False)
    station: Mapped[str] = mapped_column(String(150), nullable=False)
    train_no: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    train_name: Mapped[str] = mapped_column(String(150), default="", nullable=False)
    coach_no: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    boarding_station: Mapped[str] = mapped_column(String(150), default="", nullable=False)
    boarding_station_code: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    destination_station: Mapped[str] = mapped_column(String(150), default="", nullable=False)
    destination_station_code: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    date_of_journey: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    arrival_time: Mapped[str] = mapped_column(String(10), default="", nullable=False)

    # Luggage
    number_of_bags: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    is_late_night: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_priority: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Pricing (frozen at creation)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    late_night_charge: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    priority_charge: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)

    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, values_callable=_values, native_enum=False, length=20),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    declined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    porter: Mapped[Optional["Porter"]] = relationship(back_populates="bookings")
    audit_logs: Mapped[List["BookingAuditLog"]] = relationship(
        back_populates="booking", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_bookings_porter_id", "porter_id"),
        Index("ix_bookings_phone", "phone"),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_created_at", "created_at"),
    )


class BookingAuditLog(Base):
    """Immutable log of all booking status transitions."""
    __tablename__ = "booking_audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    booking: Mapped["Booking"] = relationship(back_populates="audit_logs")


class Review(Base):
    """Post-booking review. One per booking (enforced by unique constraint)."""
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_phone: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    experience: Mapped[ReviewExperience] = mapped_column(
        Enum(ReviewExperience, values_callable=_values, native_enum=False, length=20),
        nullable=False,
    )
    porter_rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    porter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("porters.id", ondelete="CASCADE"), nullable=False
    )
    porter_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        CheckConstraint(
            "porter_rating >= 1 AND porter_rating <= 5", name="ck_review_porter_rating_range"
        ),
        Index("ix_reviews_porter_id", "porter_id"),
        Index("ix_reviews_created_at", "created_at"),
    )


class Notification(Base):
    """
    In-app notification for a passenger (keyed by phone), a porter
    (keyed by porter id) or the admin.
    """
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient_type: Mapped[ActorRole] = mapped_column(
        Enum(ActorRole, values_callable=_values, native_enum=False, length=20),
        nullable=False,
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, values_callable=_values, native_enum=False, length=30),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        Enum(NotificationPriority, values_callable=_values, native_enum=False, length=10),
        default=NotificationPriority.NORMAL,
        nullable=False,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "recipient_type", "is_read"),
    )


class Visit(TimestampMixin, Base):
    """Anonymous page-visit session, optionally linked to the booking it produced."""
    __tablename__ = "visits"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    device: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    browser: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    os: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    page: Mapped[str] = mapped_column(String(255), nullable=False)
    page_views: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (Index("ix_visits_created_at", "created_at"),)
