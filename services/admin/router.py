"""
services/admin/router.py
Admin-only endpoints: login, booking oversight, porter verification
and removal. The single admin account is configured through settings.
"""

import logging
import math
import secrets
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.booking.repository import BookingRepository
from services.porter.storage import delete_porter_image
from shared.exceptions import AuthError, NotFoundError
from shared.middleware.auth import TokenData, require_admin
from shared.models.models import (
    ActorRole,
    Booking,
    BookingStatus,
    Notification,
    Porter,
    Review,
)
from shared.schemas.schemas import (
    AdminLoginRequest,
    BookingResponse,
    MessageResponse,
    PaginatedBookingsResponse,
    PorterResponse,
    TokenResponse,
)
from shared.utils.security import (
    access_token_ttl_seconds,
    create_access_token,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

ADMIN_SUBJECT = "admin"


# ── Helpers ───────────────────────────────────────────────────

async def _get_porter_or_404(porter_id: UUID, db: AsyncSession) -> Porter:
    porter = await db.get(Porter, porter_id)
    if not porter:
        raise NotFoundError("Porter not found")
    return porter


# ── Auth ──────────────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def admin_login(data: AdminLoginRequest):
    username_ok = secrets.compare_digest(data.username.encode(), settings.ADMIN_USERNAME.encode())
    password_ok = verify_password(data.password, settings.ADMIN_PASSWORD_HASH)
    if not (username_ok and password_ok):
        logger.warning("Failed admin login attempt")
        raise AuthError("Invalid admin credentials")

    access_token, _ = create_access_token(subject=ADMIN_SUBJECT, role=ActorRole.ADMIN.value)
    logger.info("Admin logged in")
    return TokenResponse(access_token=access_token, expires_in=access_token_ttl_seconds())


# ── Bookings ──────────────────────────────────────────────────

@router.get("/bookings", response_model=PaginatedBookingsResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    _: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All bookings, newest first."""
    bookings, total = await BookingRepository(db).list_page(status_filter, page, page_size)
    return PaginatedBookingsResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )


# ── Porters ───────────────────────────────────────────────────

@router.get("/porters", response_model=list[PorterResponse])
async def list_porters(
    verified: Optional[bool] = Query(None),
    _: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Unverified porters first, then newest."""
    query = select(Porter)
    if verified is not None:
        query = query.where(Porter.is_verified.is_(verified))
    result = await db.execute(
        query.order_by(Porter.is_verified.asc(), Porter.created_at.desc())
    )
    return [PorterResponse.model_validate(p) for p in result.scalars()]


@router.patch("/porters/{porter_id}/verify", response_model=PorterResponse)
async def verify_porter(
    porter_id: UUID,
    _: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    porter = await _get_porter_or_404(porter_id, db)
    porter.is_verified = True
    logger.info(f"Porter {porter.badge_number} verified by admin")
    return PorterResponse.model_validate(porter)


@router.delete("/porters/{porter_id}", response_model=MessageResponse)
async def delete_porter(
    porter_id: UUID,
    _: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Remove a porter account. Their bookings stay (porter unset, name kept);
    their reviews and notifications go.
    """
    porter = await _get_porter_or_404(porter_id, db)
    image_url = porter.image_url
    badge_number = porter.badge_number

    await db.execute(
        update(Booking)
        .where(Booking.porter_id == porter_id)
        .values(porter_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(Review).where(Review.porter_id == porter_id))
    await db.execute(
        delete(Notification).where(
            Notification.recipient_id == str(porter_id),
            Notification.recipient_type == ActorRole.PORTER,
        )
    )
    await db.execute(delete(Porter).where(Porter.id == porter_id))

    delete_porter_image(image_url)
    logger.info(f"Porter {badge_number} deleted by admin")
    return MessageResponse(message="Porter deleted")
