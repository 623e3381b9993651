"""
services/booking/matcher.py
Porter selection for bookings that do not name a porter.
"""

import abc
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Porter


class PorterMatcher(abc.ABC):
    """Picks a porter for a new booking at a station."""

    @abc.abstractmethod
    async def pick(self, db: AsyncSession, station: str) -> Optional[Porter]:
        ...


class FirstAvailableMatcher(PorterMatcher):
    """Longest-registered online porter at the station. Station match is case-insensitive."""

    async def pick(self, db: AsyncSession, station: str) -> Optional[Porter]:
        result = await db.execute(
            select(Porter)
            .where(
                Porter.is_online.is_(True),
                func.lower(Porter.station) == station.strip().lower(),
            )
            .order_by(Porter.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()


_default_matcher: PorterMatcher = FirstAvailableMatcher()


def get_matcher() -> PorterMatcher:
    """FastAPI dependency; override to plug in another strategy."""
    return _default_matcher
