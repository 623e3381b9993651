"""
shared/middleware/auth.py
FastAPI dependency functions for authentication and authorization.
Passengers are anonymous; porters and the admin carry a bearer JWT.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.redis_client import RedisCache, get_redis
from shared.exceptions import AuthError, PermissionDeniedError
from shared.models.models import ActorRole, Porter
from shared.utils.security import verify_access_token

security = HTTPBearer(auto_error=False)


class TokenData:
    def __init__(self, payload: dict):
        self.subject: str = payload["sub"]
        self.role: ActorRole = ActorRole(payload["role"])
        self.phone: Optional[str] = payload.get("phone")
        self.jti: str = payload["jti"]
        self.payload = payload


@dataclass(frozen=True)
class Actor:
    """Whoever is making a request. Passengers have no id."""
    role: ActorRole
    actor_id: Optional[str] = None

    @classmethod
    def passenger(cls) -> "Actor":
        return cls(role=ActorRole.PASSENGER)

    @property
    def is_authenticated(self) -> bool:
        return self.role != ActorRole.PASSENGER


async def _decode(token: str, redis) -> TokenData:
    try:
        payload = verify_access_token(token)
    except JWTError:
        raise AuthError("Invalid or expired token")

    # Check if token has been revoked (logged out)
    jti = payload.get("jti")
    if jti and await RedisCache(redis).is_token_revoked(jti):
        raise AuthError("Token has been revoked")

    try:
        return TokenData(payload)
    except (KeyError, ValueError):
        raise AuthError("Malformed token")


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    redis=Depends(get_redis),
) -> TokenData:
    """
    Extract and validate JWT from Authorization header.
    Checks deny-list in Redis to handle revoked tokens (logout).
    """
    if not credentials:
        raise AuthError()
    return await _decode(credentials.credentials, redis)


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    redis=Depends(get_redis),
) -> Actor:
    """
    Anonymous callers are passengers. A token that is present but
    invalid is rejected rather than downgraded to a passenger.
    """
    if not credentials:
        return Actor.passenger()
    token_data = await _decode(credentials.credentials, redis)
    return Actor(role=token_data.role, actor_id=token_data.subject)


async def get_current_porter(
    token_data: TokenData = Depends(get_token_data),
    db: AsyncSession = Depends(get_db),
) -> Porter:
    """Load the Porter for a porter token."""
    if token_data.role != ActorRole.PORTER:
        raise PermissionDeniedError("Porter access required")

    try:
        porter_id = uuid.UUID(token_data.subject)
    except ValueError:
        raise AuthError("Malformed token")

    result = await db.execute(select(Porter).where(Porter.id == porter_id))
    porter = result.scalar_one_or_none()
    if not porter:
        raise AuthError("Porter not found")
    return porter


async def require_admin(
    token_data: TokenData = Depends(get_token_data),
) -> TokenData:
    if token_data.role != ActorRole.ADMIN:
        raise PermissionDeniedError("Admin access required")
    return token_data


def ensure_self_or_admin(token_data: TokenData, porter_id: uuid.UUID) -> None:
    """A porter may only act on their own record; the admin on any."""
    if token_data.role == ActorRole.ADMIN:
        return
    if token_data.role == ActorRole.PORTER and token_data.subject == str(porter_id):
        return
    raise PermissionDeniedError("Not allowed to access another porter's data")
