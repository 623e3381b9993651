"""
services/notification/router.py
Notification feed endpoints. Clients poll these; the recipient id is a
porter id, a passenger phone number or "admin".
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.notification import feed
from shared.models.models import ActorRole, NotificationType
from shared.schemas.schemas import (
    MessageResponse,
    NotificationListResponse,
    NotificationResponse,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/{user_id}", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str = Path(..., min_length=1, max_length=64),
    notification_type: Optional[NotificationType] = Query(None, alias="type"),
    user_type: Optional[ActorRole] = Query(None, alias="userType"),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Newest first, with the unread count for the badge."""
    notifications, unread = await feed.list_notifications(
        db, user_id, user_type, notification_type, limit
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.patch("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Idempotent: unknown or already-read ids still succeed."""
    await feed.mark_read(db, notification_id)
    return MessageResponse(message="Marked as read")


@router.patch("/{user_id}/read-all", response_model=MessageResponse)
async def mark_all_read(
    user_id: str = Path(..., min_length=1, max_length=64),
    notification_type: Optional[NotificationType] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db),
):
    updated = await feed.mark_all_read(db, user_id, notification_type)
    return MessageResponse(message=f"{updated} notification(s) marked as read")
