"""
config/redis_client.py
Async Redis: the public reviews cache, revoked access tokens
and per-IP throttling of anonymous traffic.
"""

import json
from typing import Any, Optional
import redis.asyncio as aioredis

from config.settings import settings

PUBLIC_REVIEWS_PREFIX = "reviews:public"
REVOKED_TOKEN_PREFIX = "jwt_revoked"
ANON_RATE_PREFIX = "rate:unauth"


# ── Global client (initialized on startup) ───────────────────
redis_client: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global redis_client
    redis_client = aioredis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
    )
    await redis_client.ping()


async def close_redis() -> None:
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


def get_redis() -> aioredis.Redis:
    """FastAPI dependency; overridden in tests."""
    if not redis_client:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client


def public_reviews_key(min_rating: Optional[int], limit: int) -> str:
    return f"{PUBLIC_REVIEWS_PREFIX}:{min_rating or 0}:{limit}"


class RedisCache:
    """Thin wrapper over the client with the key layouts the API relies on."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    # ── JSON values ───────────────────────────────────────────
    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl: int = settings.REDIS_CACHE_TTL) -> None:
        await self.client.setex(key, ttl, json.dumps(value, default=str))

    async def delete_pattern(self, pattern: str) -> int:
        removed = 0
        async for key in self.client.scan_iter(match=pattern):
            removed += await self.client.delete(key)
        return removed

    # ── Public reviews ────────────────────────────────────────
    async def get_public_reviews(self, min_rating: Optional[int], limit: int) -> Optional[dict]:
        return await self.get(public_reviews_key(min_rating, limit))

    async def set_public_reviews(self, min_rating: Optional[int], limit: int, payload: dict) -> None:
        await self.set(public_reviews_key(min_rating, limit), payload)

    async def invalidate_public_reviews(self) -> int:
        """Every filter/limit combination goes stale once a review lands."""
        return await self.delete_pattern(f"{PUBLIC_REVIEWS_PREFIX}:*")

    # ── Revoked tokens ────────────────────────────────────────
    async def revoke_token(self, jti: str, ttl_seconds: int) -> None:
        # Kept only until the token would have expired anyway
        await self.client.setex(f"{REVOKED_TOKEN_PREFIX}:{jti}", max(ttl_seconds, 1), "1")

    async def is_token_revoked(self, jti: str) -> bool:
        return await self.client.exists(f"{REVOKED_TOKEN_PREFIX}:{jti}") == 1

    # ── Anonymous throttling ──────────────────────────────────
    async def allow_anonymous_request(self, client_ip: str, window_seconds: int = 60) -> bool:
        """
        Fixed window counter per IP.
        Returns False once the IP exceeds RATE_LIMIT_UNAUTH_PER_MINUTE in the window.
        """
        key = f"{ANON_RATE_PREFIX}:{client_ip}"
        count = await self.client.incr(key)
        if count == 1:
            await self.client.expire(key, window_seconds)
        return count <= settings.RATE_LIMIT_UNAUTH_PER_MINUTE
