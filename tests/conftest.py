"""
tests/conftest.py
Shared fixtures: a throwaway SQLite database per test, an in-process
Redis, an HTTP client bound to the app, and seeded porters.
"""

import os

# Settings are read at import time; configure before importing the app
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["PNR_API_KEY"] = ""
os.environ["ADMIN_USERNAME"] = "admin"

import uuid
from typing import Optional

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.database import Base, get_db
from config.redis_client import get_redis
from config.settings import settings
from main import app
from shared.models.models import ActorRole, Porter, utcnow
from shared.utils.security import create_access_token, hash_password

ADMIN_PASSWORD = "admin-secret"
PORTER_PASSWORD = "porter-pass"
PORTER_PASSWORD_HASH = hash_password(PORTER_PASSWORD)
STATION = "Chennai Central"

settings.ADMIN_PASSWORD_HASH = hash_password(ADMIN_PASSWORD)


# ── Helpers ───────────────────────────────────────────────────

def auth_headers(porter: Porter) -> dict:
    token, _ = create_access_token(
        subject=str(porter.id), role=ActorRole.PORTER.value, phone=porter.phone
    )
    return {"Authorization": f"Bearer {token}"}


def admin_headers() -> dict:
    token, _ = create_access_token(subject="admin", role=ActorRole.ADMIN.value)
    return {"Authorization": f"Bearer {token}"}


def booking_payload(porter: Optional[Porter] = None, **overrides) -> dict:
    payload = {
        "passengerName": "Asha Verma",
        "phone": "9123456780",
        "pnr": "1234567890",
        "station": STATION,
        "trainNo": "12109",
        "trainName": "Mumbai LTT Exp",
        "coachNo": "B2",
        "numberOfBags": 2,
        "weight": 18,
        "isLateNight": False,
        "isPriority": False,
    }
    if porter is not None:
        payload["porterId"] = str(porter.id)
    payload.update(overrides)
    return payload


async def make_porter(
    db: AsyncSession,
    phone: str,
    badge_number: str,
    name: str = "Ravi Kumar",
    station: str = STATION,
    is_online: bool = True,
) -> Porter:
    porter = Porter(
        id=uuid.uuid4(),
        name=name,
        phone=phone,
        badge_number=badge_number,
        station=station,
        password_hash=PORTER_PASSWORD_HASH,
        is_online=is_online,
        is_verified=True,
        languages=["Tamil", "Hindi"],
        last_seen_at=utcnow(),
    )
    db.add(porter)
    await db.commit()
    return porter


# ── Database & Redis ──────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


# ── App Client ────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, redis):
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_redis] = lambda: redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Seed Data ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def porter(db) -> Porter:
    return await make_porter(db, phone="9000000001", badge_number="MAS-101")


@pytest_asyncio.fixture
async def other_porter(db) -> Porter:
    return await make_porter(db, phone="9000000002", badge_number="MAS-102", name="Suresh Babu")


@pytest_asyncio.fixture
async def offline_porter(db) -> Porter:
    return await make_porter(
        db, phone="9000000003", badge_number="MAS-103", name="Mani Raj", is_online=False
    )


@pytest_asyncio.fixture
async def booking(client, porter) -> dict:
    """A pending booking assigned to `porter`."""
    response = await client.post("/api/bookings", json=booking_payload(porter))
    assert response.status_code == 201, response.text
    return response.json()


async def set_status(client: AsyncClient, booking_id: str, status: str, headers: Optional[dict] = None):
    return await client.patch(
        f"/api/bookings/{booking_id}/status", json={"status": status}, headers=headers or {}
    )


@pytest_asyncio.fixture
async def completed_booking(client, porter, booking) -> dict:
    headers = auth_headers(porter)
    assert (await set_status(client, booking["id"], "accepted", headers)).status_code == 200
    response = await set_status(client, booking["id"], "completed", headers)
    assert response.status_code == 200
    return response.json()
