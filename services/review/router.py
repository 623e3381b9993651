"""
services/review/router.py
Passenger reviews of completed trips and the porter ratings derived from them.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from shared.exceptions import ConflictError, NotFoundError, ValidationError
from shared.models.models import Booking, BookingStatus, Porter, Review, ReviewExperience
from shared.schemas.schemas import (
    PublicReviewsResponse,
    ReviewCreateRequest,
    ReviewResponse,
    ReviewStats,
    TopPorterResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


# ── Helpers ───────────────────────────────────────────────────

async def _recalculate_porter_rating(db: AsyncSession, porter_id: UUID) -> None:
    """Denormalize the average porter_rating onto Porter and count the trip."""
    avg = await db.scalar(
        select(func.avg(Review.porter_rating)).where(Review.porter_id == porter_id)
    )
    await db.execute(
        update(Porter)
        .where(Porter.id == porter_id)
        .values(
            rating=round(float(avg or 0), 2),
            total_trips=Porter.total_trips + 1,
        )
        .execution_options(synchronize_session=False)
    )


# ── Submit ────────────────────────────────────────────────────

@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewCreateRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Submit a review for a completed booking.
    - One review per booking (enforced by DB unique constraint)
    - Booking must be in COMPLETED status
    - porterRating defaults to rating
    """
    booking = await db.get(Booking, data.booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.status != BookingStatus.COMPLETED:
        raise ValidationError("Only completed bookings can be reviewed")
    if booking.porter_id is None:
        raise ValidationError("This booking has no porter to review")
    if data.porter_id and data.porter_id != booking.porter_id:
        raise ValidationError("Porter does not match this booking")

    existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
    if existing.scalar_one_or_none():
        raise ConflictError("This booking has already been reviewed")

    porter = await db.get(Porter, booking.porter_id)
    review = Review(
        booking_id=booking.id,
        user_name=data.user_name,
        user_phone=data.user_phone or booking.phone,
        rating=data.rating,
        comment=data.comment,
        experience=ReviewExperience(data.experience),
        porter_rating=data.porter_rating if data.porter_rating is not None else data.rating,
        porter_id=booking.porter_id,
        porter_name=porter.name if porter else (booking.porter_name or ""),
    )
    db.add(review)
    await db.flush()

    await _recalculate_porter_rating(db, booking.porter_id)
    # Readers must not re-cache the old list between invalidation and commit
    await db.commit()
    await RedisCache(redis).invalidate_public_reviews()

    logger.info(f"Review {review.id} recorded for booking {booking.booking_number}")
    return ReviewResponse.model_validate(review)


# ── Public Reads ──────────────────────────────────────────────

@router.get("/public", response_model=PublicReviewsResponse)
async def list_public_reviews(
    min_rating: Optional[int] = Query(None, alias="minRating", ge=1, le=5),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Homepage reviews, newest first. Stats cover every review. Cached."""
    cache = RedisCache(redis)
    cached = await cache.get_public_reviews(min_rating, limit)
    if cached:
        return PublicReviewsResponse(**cached)

    query = select(Review)
    if min_rating:
        query = query.where(Review.rating >= min_rating)
    result = await db.execute(query.order_by(Review.created_at.desc()).limit(limit))
    reviews = [ReviewResponse.model_validate(r) for r in result.scalars()]

    avg, total = (
        await db.execute(select(func.avg(Review.rating), func.count(Review.id)))
    ).one()

    payload = PublicReviewsResponse(
        reviews=reviews,
        stats=ReviewStats(avg_rating=round(float(avg or 0), 1), total_reviews=total),
    )
    await cache.set_public_reviews(min_rating, limit, payload.model_dump(mode="json"))
    return payload


@router.get("/top-porters", response_model=list[TopPorterResponse])
async def list_top_porters(
    limit: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Best average rating first; more reviews wins a tie."""
    avg_rating = func.avg(Review.rating).label("avg_rating")
    total_reviews = func.count(Review.id).label("total_reviews")
    result = await db.execute(
        select(
            Review.porter_id,
            func.max(Review.porter_name).label("porter_name"),
            avg_rating,
            total_reviews,
        )
        .group_by(Review.porter_id)
        .order_by(avg_rating.desc(), total_reviews.desc())
        .limit(limit)
    )
    return [
        TopPorterResponse(
            porter_id=row.porter_id,
            porter_name=row.porter_name,
            avg_rating=round(float(row.avg_rating), 2),
            total_reviews=row.total_reviews,
        )
        for row in result.all()
    ]


@router.get("/porter/{porter_id}", response_model=list[ReviewResponse])
async def get_porter_reviews(
    porter_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Review)
        .where(Review.porter_id == porter_id)
        .order_by(Review.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return [ReviewResponse.model_validate(r) for r in result.scalars()]
