"""
services/analytics/router.py
Anonymous visit tracking and the admin dashboard numbers.
Tracking is best-effort: write failures are logged, never surfaced as errors.
"""

import logging
from datetime import datetime, time, timezone

from fastapi import APIRouter, Depends, Path
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.repository import BookingRepository
from shared.middleware.auth import TokenData, require_admin
from shared.models.models import Porter, Review, Visit
from shared.schemas.schemas import (
    AnalyticsDashboardResponse,
    VisitBookingLink,
    VisitCreateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


# ── Tracking ──────────────────────────────────────────────────

@router.post("/visit")
async def track_visit(
    data: VisitCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """First hit creates the session row; later hits bump page_views."""
    try:
        result = await db.execute(select(Visit).where(Visit.session_id == data.session_id))
        visit = result.scalar_one_or_none()
        if visit:
            visit.page = data.page
            visit.page_views += 1
        else:
            visit = Visit(**data.model_dump())
            db.add(visit)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Visit tracking failed for session {data.session_id}: {e}")
        return {"success": False}

    return {"success": True, "sessionId": visit.session_id, "pageViews": visit.page_views}


@router.patch("/visit/{session_id}/booking")
async def link_visit_booking(
    data: VisitBookingLink,
    session_id: str = Path(..., min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    """Marks the session as converted."""
    try:
        result = await db.execute(
            update(Visit)
            .where(Visit.session_id == session_id)
            .values(booking_id=data.booking_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Linking booking to session {session_id} failed: {e}")
        return {"success": False}

    if result.rowcount == 0:
        logger.warning(f"Booking link for unknown session {session_id}")
        return {"success": False}
    return {"success": True}


# ── Dashboard ─────────────────────────────────────────────────

async def _breakdown(db: AsyncSession, column) -> dict:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {(key or "unknown"): count for key, count in result.all()}


@router.get("/dashboard", response_model=AnalyticsDashboardResponse)
async def get_dashboard(
    _: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    today_start = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)

    total_visits = await db.scalar(select(func.count(Visit.id))) or 0
    total_page_views = await db.scalar(select(func.coalesce(func.sum(Visit.page_views), 0))) or 0
    visits_today = await db.scalar(
        select(func.count(Visit.id)).where(Visit.created_at >= today_start)
    ) or 0
    converted = await db.scalar(
        select(func.count(Visit.id)).where(Visit.booking_id.is_not(None))
    ) or 0

    repo = BookingRepository(db)
    bookings_by_status = await repo.status_counts()

    total_porters = await db.scalar(select(func.count(Porter.id))) or 0
    online_porters = await db.scalar(
        select(func.count(Porter.id)).where(Porter.is_online.is_(True))
    ) or 0
    avg_rating = await db.scalar(select(func.avg(Review.rating)))

    return AnalyticsDashboardResponse(
        total_visits=total_visits,
        total_page_views=int(total_page_views),
        visits_today=visits_today,
        converted_sessions=converted,
        conversion_rate=round(converted / total_visits * 100, 2) if total_visits else 0.0,
        device_breakdown=await _breakdown(db, Visit.device),
        browser_breakdown=await _breakdown(db, Visit.browser),
        total_bookings=sum(bookings_by_status.values()),
        bookings_by_status=bookings_by_status,
        total_revenue=await repo.completed_earnings(),
        total_porters=total_porters,
        online_porters=online_porters,
        avg_rating=round(float(avg_rating or 0), 2),
    )
