"""Pytest configuration and shared fixtures for service and API tests."""

import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test DB before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_fitpulse.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fitpulse.core.auth import create_access_token, hash_password
from fitpulse.db.base import Base
from fitpulse.db.session import async_session_maker, engine, init_db
from fitpulse.main import app, limiter
from fitpulse.models.user import User
from fitpulse.models.workout import Workout

pytest_plugins = ["pytest_asyncio"]


@pytest_asyncio.fixture
async def db():
    """Fresh schema (with seeded badge definitions) per test; dropped afterwards."""
    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with async_session_maker() as s:
        yield s


@pytest_asyncio.fixture
async def client(db):
    """AsyncClient on the app. Lifespan is not run; the db fixture creates the schema."""
    limiter.reset()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def create_user(email: str, *, display_name: str | None = None, timezone_name: str | None = None,
                      is_public: bool = True) -> tuple[int, str]:
    """Insert a committed user and return (user_id, access_token)."""
    async with async_session_maker() as s:
        user = User(
            email=email,
            password_hash=hash_password("password123"),
            display_name=display_name,
            timezone=timezone_name,
            is_public=is_public,
            created_at=datetime.now(timezone.utc),
        )
        s.add(user)
        await s.commit()
        await s.refresh(user)
        return user.id, create_access_token(user.id, user.email)


async def add_workout(s, user_id: int, type_: str, date: datetime, duration_min: float = 30.0, **payload) -> Workout:
    """Insert a workout row directly (no commit pipeline)."""
    w = Workout(
        user_id=user_id,
        type=type_,
        title=f"{type_} workout",
        date=date,
        duration_min=duration_min,
        payload=payload,
        created_at=datetime.now(timezone.utc),
    )
    s.add(w)
    await s.flush()
    return w


@pytest_asyncio.fixture
async def test_user(db):
    """Create a user via DB (committed) and return (user_id, email, access_token)."""
    user_id, token = await create_user("test@test.com", display_name="Tester")
    return user_id, "test@test.com", token


@pytest.fixture
def auth_headers(test_user):
    """Return dict of Authorization header for test_user."""
    _, __, token = test_user
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    """Factory fixture: `await make_user(email, ...)` -> (user_id, token)."""
    return create_user


@pytest.fixture
def make_workout(session):
    """Factory fixture: `await make_workout(user_id, type_, date, duration_min, **payload)` -> Workout."""

    async def _make(user_id: int, type_: str, date: datetime, duration_min: float = 30.0, **payload) -> Workout:
        return await add_workout(session, user_id, type_, date, duration_min, **payload)

    return _make
