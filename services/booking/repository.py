"""
services/booking/repository.py
Data access for bookings. Status changes go through a single
conditional UPDATE so two racing callers cannot both win.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Booking, BookingAuditLog, BookingStatus, Review, utcnow

_STATUS_TIMESTAMP = {
    BookingStatus.ACCEPTED: "accepted_at",
    BookingStatus.DECLINED: "declined_at",
    BookingStatus.COMPLETED: "completed_at",
}


class BookingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, booking_id: uuid.UUID) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        await self.db.flush()
        return booking

    async def compare_and_swap_status(
        self,
        booking_id: uuid.UUID,
        expected: BookingStatus,
        new: BookingStatus,
    ) -> bool:
        """
        Set status to `new` only if it is still `expected`.
        Returns False when another writer got there first.
        """
        now = utcnow()
        values = {"status": new, "updated_at": now}
        stamp = _STATUS_TIMESTAMP.get(new)
        if stamp:
            values[stamp] = now

        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def refresh(self, booking: Booking) -> Booking:
        await self.db.refresh(booking)
        return booking

    async def list_for_porter(
        self,
        porter_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> Sequence[Booking]:
        query = select(Booking).where(Booking.porter_id == porter_id)
        if status:
            query = query.where(Booking.status == status)
        result = await self.db.execute(query.order_by(Booking.created_at.desc()))
        return result.scalars().all()

    async def list_for_phone(self, phone: str) -> Sequence[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.phone == phone).order_by(Booking.created_at.desc())
        )
        return result.scalars().all()

    async def list_page(
        self,
        status: Optional[BookingStatus],
        page: int,
        page_size: int,
    ) -> tuple[Sequence[Booking], int]:
        query = select(Booking)
        count_query = select(func.count()).select_from(Booking)
        if status:
            query = query.where(Booking.status == status)
            count_query = count_query.where(Booking.status == status)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(Booking.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return result.scalars().all(), total

    async def status_counts(self, porter_id: Optional[uuid.UUID] = None) -> dict:
        query = select(Booking.status, func.count()).group_by(Booking.status)
        if porter_id:
            query = query.where(Booking.porter_id == porter_id)
        result = await self.db.execute(query)
        return {
            (status.value if isinstance(status, BookingStatus) else status): count
            for status, count in result.all()
        }

    async def completed_earnings(self, porter_id: Optional[uuid.UUID] = None) -> int:
        query = select(func.coalesce(func.sum(Booking.total_price), 0)).where(
            Booking.status == BookingStatus.COMPLETED
        )
        if porter_id:
            query = query.where(Booking.porter_id == porter_id)
        return int((await self.db.execute(query)).scalar_one())

    async def delete(self, booking_id: uuid.UUID) -> bool:
        # Dependents go first; SQLite does not enforce ON DELETE CASCADE by default
        await self.db.execute(
            delete(BookingAuditLog).where(BookingAuditLog.booking_id == booking_id)
        )
        await self.db.execute(delete(Review).where(Review.booking_id == booking_id))
        result = await self.db.execute(delete(Booking).where(Booking.id == booking_id))
        return result.rowcount > 0

    async def log_status_change(
        self,
        booking_id: uuid.UUID,
        from_status: Optional[BookingStatus],
        to_status: BookingStatus,
        actor_role: str,
        actor_id: Optional[str] = None,
    ) -> None:
        """Append an immutable audit log entry for every status change."""
        self.db.add(
            BookingAuditLog(
                booking_id=booking_id,
                from_status=from_status.value if from_status else None,
                to_status=to_status.value,
                actor_role=actor_role,
                actor_id=actor_id,
            )
        )
