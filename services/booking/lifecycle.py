"""
services/booking/lifecycle.py
Booking lifecycle controller.
States: PENDING → ACCEPTED → COMPLETED, PENDING → DECLINED.
DECLINED and COMPLETED are terminal.
"""

import logging
import random
import string
import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.booking.matcher import FirstAvailableMatcher, PorterMatcher
from services.booking.pricing import calculate_price
from services.booking.repository import BookingRepository
from services.notification.feed import notify_passenger, notify_porter
from shared.exceptions import (
    AuthError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from shared.middleware.auth import Actor
from shared.models.models import (
    ActorRole,
    Booking,
    BookingStatus,
    NotificationPriority,
    NotificationType,
    Porter,
)
from shared.schemas.schemas import BookingCreateRequest

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.ACCEPTED, BookingStatus.DECLINED},
    BookingStatus.ACCEPTED: {BookingStatus.COMPLETED},
    BookingStatus.DECLINED: set(),
    BookingStatus.COMPLETED: set(),
}

PORTER_ONLY_TARGETS = {BookingStatus.ACCEPTED, BookingStatus.DECLINED}

_STATUS_NOTIFICATIONS = {
    BookingStatus.ACCEPTED: NotificationType.BOOKING_ACCEPTED,
    BookingStatus.DECLINED: NotificationType.BOOKING_DECLINED,
    BookingStatus.COMPLETED: NotificationType.BOOKING_COMPLETED,
}


def generate_booking_number() -> str:
    """Generate a human-readable booking number like CM-2026-X7K9M."""
    year = datetime.now().year
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=5))
    return f"CM-{year}-{suffix}"


def can_transition(current: BookingStatus, requested: BookingStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


class BookingLifecycle:
    def __init__(self, db: AsyncSession, matcher: Optional[PorterMatcher] = None):
        self.db = db
        self.repo = BookingRepository(db)
        self.matcher = matcher or FirstAvailableMatcher()

    # ── Creation ──────────────────────────────────────────────

    async def _choose_porter(self, porter_id: Optional[uuid.UUID], station: str) -> Porter:
        if porter_id:
            porter = await self.db.get(Porter, porter_id)
            if not porter:
                raise NotFoundError("Porter not found")
            if not porter.is_online:
                raise ConflictError("Porter is offline. Please choose another porter.")
            return porter

        porter = await self.matcher.pick(self.db, station)
        if not porter:
            raise NotFoundError(f"No porter is available at {station} right now")
        return porter

    async def create_booking(self, data: BookingCreateRequest) -> Booking:
        """
        1. Recompute the price; reject a client quote that disagrees
        2. Resolve the porter (requested one, or the matcher's pick)
        3. Persist as PENDING with an audit row
        4. Notify the porter
        """
        price = calculate_price(
            data.number_of_bags, data.weight, data.is_late_night, data.is_priority
        )
        if data.total_price is not None and data.total_price != price.total_price:
            raise ValidationError(
                f"Price mismatch: expected ₹{price.total_price}, got ₹{data.total_price}"
            )

        porter = await self._choose_porter(data.porter_id, data.station)

        fields = data.model_dump(exclude={"porter_id", "total_price"})
        booking = Booking(
            **fields,
            booking_number=generate_booking_number(),
            porter_id=porter.id,
            porter_name=porter.name,
            base_price=price.base_price,
            late_night_charge=price.late_night_charge,
            priority_charge=price.priority_charge,
            total_price=price.total_price,
            status=BookingStatus.PENDING,
        )
        await self.repo.add(booking)
        await self.repo.log_status_change(
            booking.id, None, BookingStatus.PENDING, ActorRole.PASSENGER.value, booking.phone
        )
        notify_porter(
            self.db,
            booking,
            NotificationType.BOOKING_CREATED,
            NotificationPriority.HIGH if booking.is_priority else NotificationPriority.NORMAL,
        )

        logger.info(
            f"Booking {booking.booking_number} created for porter {porter.id} "
            f"at {booking.station} (₹{booking.total_price})"
        )
        return booking

    # ── Transitions ───────────────────────────────────────────

    def _authorize(self, booking: Booking, requested: BookingStatus, actor: Actor) -> None:
        owns_booking = (
            actor.role == ActorRole.PORTER
            and booking.porter_id is not None
            and actor.actor_id == str(booking.porter_id)
        )

        if requested in PORTER_ONLY_TARGETS:
            if not actor.is_authenticated:
                raise AuthError("Porter login required to accept or decline bookings")
            if not owns_booking:
                raise PermissionDeniedError("Only the assigned porter can accept or decline this booking")
        elif requested == BookingStatus.COMPLETED:
            if actor.role == ActorRole.PORTER and not owns_booking:
                raise PermissionDeniedError("Only the assigned porter can complete this booking")

    async def transition_status(
        self,
        booking_id: uuid.UUID,
        requested: BookingStatus,
        actor: Actor,
    ) -> Booking:
        requested = BookingStatus(requested)
        booking = await self.get_booking(booking_id)
        self._authorize(booking, requested, actor)

        current = booking.status
        if current == requested:
            return booking
        if not can_transition(current, requested):
            raise InvalidTransitionError(
                f"Cannot move booking from '{current.value}' to '{requested.value}'"
            )

        swapped = await self.repo.compare_and_swap_status(booking.id, current, requested)
        await self.repo.refresh(booking)
        if not swapped:
            # Lost the race; the winner may have made the same move
            if booking.status == requested:
                return booking
            raise InvalidTransitionError(
                f"Booking is now '{booking.status.value}' and cannot move to '{requested.value}'"
            )

        await self.repo.log_status_change(
            booking.id, current, requested, actor.role.value, actor.actor_id
        )
        notify_passenger(self.db, booking, _STATUS_NOTIFICATIONS[requested])

        logger.info(
            f"Booking {booking.booking_number}: {current.value} → {requested.value} "
            f"by {actor.role.value}"
        )
        return booking

    # ── Reads ─────────────────────────────────────────────────

    async def get_booking(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.repo.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def list_for_porter(
        self, porter_id: uuid.UUID, status: Optional[BookingStatus] = None
    ) -> Sequence[Booking]:
        return await self.repo.list_for_porter(porter_id, status)

    async def list_for_phone(self, phone: str) -> Sequence[Booking]:
        return await self.repo.list_for_phone(phone)

    async def porter_contact(self, booking: Booking) -> Optional[str]:
        """Porter phone, shared with the passenger only once accepted."""
        if booking.porter_id is None or booking.status not in (
            BookingStatus.ACCEPTED, BookingStatus.COMPLETED
        ):
            return None
        return await self.db.scalar(select(Porter.phone).where(Porter.id == booking.porter_id))

    async def porter_stats(self, porter_id: uuid.UUID) -> dict:
        counts = await self.repo.status_counts(porter_id)
        return {
            "porter_id": porter_id,
            "pending": counts.get(BookingStatus.PENDING.value, 0),
            "accepted": counts.get(BookingStatus.ACCEPTED.value, 0),
            "completed": counts.get(BookingStatus.COMPLETED.value, 0),
            "declined": counts.get(BookingStatus.DECLINED.value, 0),
            "total_earnings": await self.repo.completed_earnings(porter_id),
        }

    # ── Admin ─────────────────────────────────────────────────

    async def delete_booking(self, booking_id: uuid.UUID, actor: Actor) -> None:
        if actor.role != ActorRole.ADMIN:
            raise PermissionDeniedError("Admin access required")
        if not await self.repo.delete(booking_id):
            raise NotFoundError("Booking not found")
        logger.info(f"Booking {booking_id} deleted by admin")
