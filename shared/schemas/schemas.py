"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
Wire format is camelCase; attributes stay snake_case.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.models.models import (
    ActorRole,
    BookingStatus,
    NotificationPriority,
    NotificationType,
    ReviewExperience,
)

PHONE_PATTERN = r"^\d{10}$"
PNR_PATTERN = r"^\d{10}$"


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RequestSchema(BaseSchema):
    """Inbound bodies reject fields they do not declare."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class PaginatedResponse(BaseSchema):
    items: List[Any]
    total: int
    page: int
    page_size: int
    pages: int


# ── Pricing ───────────────────────────────────────────────────

class PriceQuoteRequest(RequestSchema):
    number_of_bags: int = Field(..., ge=1, le=20)
    weight: float = Field(..., gt=0, le=500)
    is_late_night: bool = False
    is_priority: bool = False


class PriceQuoteResponse(BaseSchema):
    base_price: int
    late_night_charge: int
    priority_charge: int
    total_price: int
    description: str


# ── Booking ───────────────────────────────────────────────────

class BookingCreateRequest(RequestSchema):
    porter_id: Optional[uuid.UUID] = None
    passenger_name: str = Field(..., min_length=2, max_length=255)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    pnr: str = Field(..., pattern=PNR_PATTERN)
    station: str = Field(..., min_length=2, max_length=150)

    train_no: str = Field("", max_length=10)
    train_name: str = Field("", max_length=150)
    coach_no: str = Field("", max_length=10)
    boarding_station: str = Field("", max_length=150)
    boarding_station_code: str = Field("", max_length=10)
    destination_station: str = Field("", max_length=150)
    destination_station_code: str = Field("", max_length=10)
    date_of_journey: str = Field("", max_length=20)
    arrival_time: str = Field("", max_length=10)

    number_of_bags: int = Field(..., ge=1, le=20)
    weight: float = Field(..., gt=0, le=500)
    is_late_night: bool = False
    is_priority: bool = False
    # Optional client quote; the server price is authoritative
    total_price: Optional[int] = Field(None, ge=0)
    notes: str = Field("", max_length=1000)


class BookingStatusUpdate(RequestSchema):
    status: BookingStatus


class BookingResponse(BaseSchema):
    id: uuid.UUID
    booking_number: str
    porter_id: Optional[uuid.UUID]
    porter_name: Optional[str]
    passenger_name: str
    phone: str
    pnr: str
    station: str
    train_no: str
    train_name: str
    coach_no: str
    boarding_station: str
    boarding_station_code: str
    destination_station: str
    destination_station_code: str
    date_of_journey: str
    arrival_time: str
    number_of_bags: int
    weight: float
    is_late_night: bool
    is_priority: bool
    base_price: int
    late_night_charge: int
    priority_charge: int
    total_price: int
    notes: str
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # Joined once the porter has accepted
    porter_phone: Optional[str] = None


class PaginatedBookingsResponse(PaginatedResponse):
    items: List[BookingResponse]


# ── Porter ────────────────────────────────────────────────────

class PorterResponse(BaseSchema):
    id: uuid.UUID
    badge_number: str
    name: str
    phone: str
    station: str
    image_url: Optional[str]
    rating: float
    total_trips: int
    is_online: bool
    is_verified: bool
    experience: Optional[str]
    specialization: Optional[str]
    languages: List[str]
    last_seen_at: Optional[datetime]
    created_at: datetime


class PorterLoginRequest(RequestSchema):
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)


class PorterAuthResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    porter: PorterResponse


class PorterOnlineUpdate(RequestSchema):
    is_online: bool


class PorterStatsResponse(BaseSchema):
    porter_id: uuid.UUID
    pending: int
    accepted: int
    completed: int
    declined: int
    total_earnings: int


# ── Review ────────────────────────────────────────────────────

class ReviewCreateRequest(RequestSchema):
    booking_id: uuid.UUID
    user_name: str = Field(..., min_length=1, max_length=255)
    user_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    rating: int = Field(..., ge=1, le=5, strict=True)
    comment: str = Field(..., max_length=2000)
    experience: ReviewExperience
    porter_rating: Optional[int] = Field(None, ge=1, le=5, strict=True)
    porter_id: Optional[uuid.UUID] = None
    # Accepted for client compatibility; the stored name comes from the porter record
    porter_name: Optional[str] = Field(None, max_length=255)

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v: str) -> str:
        if not v:
            raise ValueError("Comment must not be empty")
        return v


class ReviewResponse(BaseSchema):
    id: uuid.UUID
    booking_id: uuid.UUID
    user_name: str
    rating: int
    comment: str
    experience: ReviewExperience
    porter_rating: int
    porter_id: uuid.UUID
    porter_name: str
    created_at: datetime


class ReviewStats(BaseSchema):
    avg_rating: float
    total_reviews: int


class PublicReviewsResponse(BaseSchema):
    reviews: List[ReviewResponse]
    stats: ReviewStats


class TopPorterResponse(BaseSchema):
    porter_id: uuid.UUID
    porter_name: str
    avg_rating: float
    total_reviews: int


# ── Notification ──────────────────────────────────────────────

class NotificationResponse(BaseSchema):
    id: uuid.UUID
    recipient_id: str
    recipient_type: ActorRole
    type: NotificationType
    title: str
    message: str
    booking_id: Optional[uuid.UUID]
    priority: NotificationPriority
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime


class NotificationListResponse(BaseSchema):
    notifications: List[NotificationResponse]
    unread_count: int


# ── Analytics ─────────────────────────────────────────────────

class VisitCreateRequest(RequestSchema):
    session_id: str = Field(..., min_length=1, max_length=100)
    page: str = Field(..., min_length=1, max_length=255)
    user_agent: Optional[str] = Field(None, max_length=1000)
    device: Optional[str] = Field(None, max_length=20)
    browser: Optional[str] = Field(None, max_length=50)
    os: Optional[str] = Field(None, max_length=50)


class VisitBookingLink(RequestSchema):
    booking_id: uuid.UUID


class AnalyticsDashboardResponse(BaseSchema):
    total_visits: int
    total_page_views: int
    visits_today: int
    converted_sessions: int
    conversion_rate: float
    device_breakdown: Dict[str, int]
    browser_breakdown: Dict[str, int]
    total_bookings: int
    bookings_by_status: Dict[str, int]
    total_revenue: int
    total_porters: int
    online_porters: int
    avg_rating: float


# ── Admin ─────────────────────────────────────────────────────

class AdminLoginRequest(RequestSchema):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


# ── PNR ───────────────────────────────────────────────────────

class PNRResponse(BaseSchema):
    pnr: str
    train_no: str
    train_name: str
    coach_no: str = ""
    boarding_station: str = ""
    boarding_station_code: str = ""
    destination_station: str = ""
    destination_station_code: str = ""
    date_of_journey: str = ""
    arrival_time: str = ""
    source: str  # "live" | "fallback"


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    detail: str
    code: Optional[str] = None
