"""
services/porter/router.py
Porter accounts: registration, phone/password login, online toggle,
assigned bookings and earnings.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from services.booking.router import _enrich_booking, get_lifecycle
from services.booking.lifecycle import BookingLifecycle
from services.porter.storage import delete_porter_image, save_porter_image
from shared.exceptions import AuthError, ConflictError, PermissionDeniedError
from shared.middleware.auth import (
    TokenData,
    ensure_self_or_admin,
    get_current_porter,
    get_token_data,
)
from shared.models.models import ActorRole, BookingStatus, Porter, utcnow
from shared.schemas.schemas import (
    PHONE_PATTERN,
    BookingResponse,
    MessageResponse,
    PorterAuthResponse,
    PorterLoginRequest,
    PorterOnlineUpdate,
    PorterResponse,
    PorterStatsResponse,
)
from shared.utils.security import (
    access_token_ttl_seconds,
    create_access_token,
    get_token_remaining_ttl,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/porter", tags=["Porter"])
directory_router = APIRouter(prefix="/porters", tags=["Porter"])


# ── Helpers ───────────────────────────────────────────────────

def _parse_languages(raw: Optional[str]) -> List[str]:
    """Form field is a comma-separated list: "Hindi, Marathi"."""
    if not raw:
        return []
    return [lang.strip() for lang in raw.split(",") if lang.strip()]


# ── Registration & Login ──────────────────────────────────────

@router.post("/register", response_model=PorterAuthResponse, status_code=status.HTTP_201_CREATED)
async def register_porter(
    name: str = Form(..., min_length=2, max_length=255),
    phone: str = Form(..., pattern=PHONE_PATTERN),
    badge_number: str = Form(..., alias="badgeNumber", min_length=1, max_length=30),
    station: str = Form(..., min_length=2, max_length=150),
    password: str = Form(..., min_length=6, max_length=128),
    image: UploadFile = File(...),
    experience: Optional[str] = Form(None, max_length=50),
    specialization: Optional[str] = Form(None, max_length=100),
    languages: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Multipart registration. Phone and badge number must be unused.
    New porters start offline and unverified, and are signed in straight away.
    """
    existing = await db.execute(
        select(Porter.phone, Porter.badge_number).where(
            or_(Porter.phone == phone, Porter.badge_number == badge_number.strip())
        )
    )
    for existing_phone, existing_badge in existing.all():
        if existing_phone == phone:
            raise ConflictError("A porter with this phone number is already registered")
        raise ConflictError("A porter with this badge number is already registered")

    image_url = await save_porter_image(image)
    porter = Porter(
        name=name.strip(),
        phone=phone,
        badge_number=badge_number.strip(),
        station=station.strip(),
        password_hash=hash_password(password),
        image_url=image_url,
        experience=experience,
        specialization=specialization,
        languages=_parse_languages(languages),
    )
    db.add(porter)
    try:
        await db.flush()
    except Exception:
        delete_porter_image(image_url)
        raise

    access_token, _ = create_access_token(
        subject=str(porter.id),
        role=ActorRole.PORTER.value,
        phone=porter.phone,
    )
    logger.info(f"Porter registered: {porter.badge_number} at {porter.station}")
    return PorterAuthResponse(
        access_token=access_token,
        expires_in=access_token_ttl_seconds(),
        porter=PorterResponse.model_validate(porter),
    )


@router.post("/login", response_model=PorterAuthResponse)
async def login_porter(
    data: PorterLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Porter).where(Porter.phone == data.phone))
    porter = result.scalar_one_or_none()
    if not porter or not verify_password(data.password, porter.password_hash):
        logger.warning(f"Failed porter login for phone ending {data.phone[-4:]}")
        raise AuthError("Invalid phone number or password")

    porter.last_seen_at = utcnow()
    access_token, _ = create_access_token(
        subject=str(porter.id),
        role=ActorRole.PORTER.value,
        phone=porter.phone,
    )
    logger.info(f"Porter {porter.badge_number} logged in")

    return PorterAuthResponse(
        access_token=access_token,
        expires_in=access_token_ttl_seconds(),
        porter=PorterResponse.model_validate(porter),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout_porter(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Deny-list the token until it expires and take the porter offline."""
    if token_data.role != ActorRole.PORTER:
        raise PermissionDeniedError("Porter access required")

    ttl = get_token_remaining_ttl(token_data.payload)
    if ttl > 0:
        await RedisCache(redis).revoke_token(token_data.jti, ttl)

    porter = await db.get(Porter, UUID(token_data.subject))
    if porter:
        porter.is_online = False

    return MessageResponse(message="Logged out successfully")


# ── Profile ───────────────────────────────────────────────────

@router.get("/profile", response_model=PorterResponse)
async def get_profile(porter: Porter = Depends(get_current_porter)):
    return PorterResponse.model_validate(porter)


@router.patch("/{porter_id}/status", response_model=PorterResponse)
async def update_online_status(
    porter_id: UUID,
    data: PorterOnlineUpdate,
    porter: Porter = Depends(get_current_porter),
):
    """Go online to receive bookings, offline to stop."""
    if porter.id != porter_id:
        raise PermissionDeniedError("Porters can only change their own status")

    porter.is_online = data.is_online
    porter.last_seen_at = utcnow()
    logger.info(f"Porter {porter.badge_number} is now {'online' if data.is_online else 'offline'}")
    return PorterResponse.model_validate(porter)


# ── Bookings & Stats ──────────────────────────────────────────

@router.get("/{porter_id}/bookings", response_model=list[BookingResponse])
async def list_porter_bookings(
    porter_id: UUID,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    token_data: TokenData = Depends(get_token_data),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Polled by the porter dashboard; each poll counts as a heartbeat."""
    ensure_self_or_admin(token_data, porter_id)

    if token_data.role == ActorRole.PORTER:
        porter = await lifecycle.db.get(Porter, porter_id)
        if porter:
            porter.last_seen_at = utcnow()

    bookings = await lifecycle.list_for_porter(porter_id, status_filter)
    return [await _enrich_booking(b, lifecycle) for b in bookings]


@router.get("/{porter_id}/stats", response_model=PorterStatsResponse)
async def get_porter_stats(
    porter_id: UUID,
    token_data: TokenData = Depends(get_token_data),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    ensure_self_or_admin(token_data, porter_id)
    return PorterStatsResponse(**await lifecycle.porter_stats(porter_id))


# ── Public Directory ──────────────────────────────────────────

@directory_router.get("/available", response_model=list[PorterResponse])
async def list_available_porters(
    station: Optional[str] = Query(None, max_length=150),
    db: AsyncSession = Depends(get_db),
):
    """Online porters, best rated first."""
    query = select(Porter).where(Porter.is_online.is_(True))
    if station:
        query = query.where(func.lower(Porter.station) == station.strip().lower())

    result = await db.execute(
        query.order_by(Porter.rating.desc(), Porter.total_trips.desc())
    )
    return [PorterResponse.model_validate(p) for p in result.scalars()]
