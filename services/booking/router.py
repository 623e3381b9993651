"""
services/booking/router.py
Booking endpoints. Passengers are anonymous and identified by phone;
porters authenticate to accept or decline.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.lifecycle import BookingLifecycle
from services.booking.matcher import PorterMatcher, get_matcher
from services.booking.pricing import calculate_price
from shared.middleware.auth import Actor, TokenData, get_optional_actor, require_admin
from shared.models.models import ActorRole, Booking
from shared.schemas.schemas import (
    PHONE_PATTERN,
    BookingCreateRequest,
    BookingResponse,
    BookingStatusUpdate,
    MessageResponse,
    PriceQuoteRequest,
    PriceQuoteResponse,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
pricing_router = APIRouter(prefix="/pricing", tags=["Pricing"])


# ── Helpers ───────────────────────────────────────────────────

def get_lifecycle(
    db: AsyncSession = Depends(get_db),
    matcher: PorterMatcher = Depends(get_matcher),
) -> BookingLifecycle:
    return BookingLifecycle(db, matcher)


async def _enrich_booking(booking: Booking, lifecycle: BookingLifecycle) -> BookingResponse:
    response = BookingResponse.model_validate(booking)
    response.porter_phone = await lifecycle.porter_contact(booking)
    return response


# ── Create ────────────────────────────────────────────────────

@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreateRequest,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """
    Create a PENDING booking. The price is recomputed here and the
    porter is either the one requested or the first online at the station.
    """
    booking = await lifecycle.create_booking(data)
    return await _enrich_booking(booking, lifecycle)


# ── Read ──────────────────────────────────────────────────────

@router.get("/phone/{phone}", response_model=list[BookingResponse])
async def list_bookings_for_phone(
    phone: str = Path(..., pattern=PHONE_PATTERN),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Booking history for a passenger phone, newest first."""
    bookings = await lifecycle.list_for_phone(phone)
    return [await _enrich_booking(b, lifecycle) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Polled by the passenger while waiting for the porter's decision."""
    booking = await lifecycle.get_booking(booking_id)
    return await _enrich_booking(booking, lifecycle)


# ── Status ────────────────────────────────────────────────────

@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    data: BookingStatusUpdate,
    actor: Actor = Depends(get_optional_actor),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """
    accepted/declined: assigned porter only.
    completed: passenger, assigned porter or admin.
    Repeating the current status is a no-op.
    """
    booking = await lifecycle.transition_status(booking_id, data.status, actor)
    return await _enrich_booking(booking, lifecycle)


# ── Admin ─────────────────────────────────────────────────────

@router.delete("/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: UUID,
    token_data: TokenData = Depends(require_admin),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    await lifecycle.delete_booking(booking_id, Actor(ActorRole.ADMIN, token_data.subject))
    return MessageResponse(message="Booking deleted")


# ── Pricing ───────────────────────────────────────────────────

@pricing_router.post("/quote", response_model=PriceQuoteResponse)
async def quote_price(data: PriceQuoteRequest):
    """Same calculation the booking uses, for showing a quote before submit."""
    price = calculate_price(
        data.number_of_bags, data.weight, data.is_late_night, data.is_priority
    )
    return PriceQuoteResponse.model_validate(price)
