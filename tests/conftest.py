"""Shared test fixtures.

Every test that touches the database gets a fresh in-memory SQLite schema;
Redis is replaced by fakeredis.
"""

from __future__ import annotations

import os

os.environ["SB_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SB_JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256-signing"
os.environ["SB_LOG_FORMAT"] = "console"

from collections.abc import AsyncGenerator  # noqa: E402
from dataclasses import dataclass  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fakeredis.aioredis import FakeRedis  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from streakboard import redis_client  # noqa: E402
from streakboard.auth.jwt import create_access_token  # noqa: E402
from streakboard.auth.service import get_or_create_user  # noqa: E402
from streakboard.config import get_settings  # noqa: E402
from streakboard.database import close_db, create_schema, get_session, init_db  # noqa: E402
from streakboard.db.models import User  # noqa: E402

get_settings.cache_clear()


@dataclass
class TestUser:
    """A persisted user plus a bearer header for API calls.

    ``id`` is a plain int so it stays readable after a rollback expires the ORM row.
    """

    __test__ = False

    id: int
    user: User
    headers: dict[str, str]


def auth_headers(subject: str, email: str, name: str | None = None) -> dict[str, str]:
    token = create_access_token(subject, email, display_name=name)
    return {"Authorization": f"Bearer {token}"}


async def make_user(db: AsyncSession, subject: str, name: str | None = None) -> TestUser:
    """Create (or fetch) a user for subject and commit."""
    email = f"{subject}@example.com"
    user, _ = await get_or_create_user(db, {"sub": subject, "email": email, "name": name})
    await db.commit()
    return TestUser(id=user.id, user=user, headers=auth_headers(subject, email, name))


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema for one test."""
    await init_db(get_settings().database_url)
    await create_schema()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service-level tests and assertions."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def fake_redis(monkeypatch) -> AsyncGenerator[FakeRedis, None]:
    """fakeredis standing in for the shared Redis pool."""
    fake = FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "_pool", fake)
    yield fake
    await fake.flushall()
    await fake.aclose()


@pytest_asyncio.fixture
async def client(database, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app. The lifespan is not run; fixtures set up DB and Redis."""
    from streakboard.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def settings():
    return get_settings()
