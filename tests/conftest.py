"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI + aiosqlite:

1. Each test gets its own in-memory SQLite engine. StaticPool keeps the
   single connection alive, so every session sees the same database.
2. Tables are created from Base.metadata (no migrations needed).
3. get_db is overridden to hand out sessions on that engine, one per
   request, just like production.
4. Auth is NOT overridden: fixtures mint real tokens for real users, so
   the role checks (require_admin) run for real.

The env vars below must be set before anything imports foodiii.config.
"""

import os

os.environ.setdefault("FOODIII_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FOODIII_BCRYPT_ROUNDS", "4")
os.environ.setdefault("FOODIII_ENVIRONMENT", "development")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from foodiii.auth.jwt import create_access_token
from foodiii.db.engine import get_db
from foodiii.db.models import Base
from foodiii.main import app
from foodiii.services.user_service import UserService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """Session for seeding data directly, outside of HTTP."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _clean_registry():
    """Every test starts with no admin dashboards connected."""
    app.state.registry.clear()
    yield
    app.state.registry.clear()


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client with get_db pointed at the test database.

    Requests carry no credentials; pass admin_headers / user_headers
    for protected routes.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Background pushes must finish on this test's loop
    await app.state.publisher.drain()
    app.dependency_overrides.clear()


# ─── Users and tokens ───────────────────────────────────


@pytest_asyncio.fixture()
async def admin_user(db_session):
    return await UserService(db_session).create_user(
        name="Admin",
        email="admin@foodiii.test",
        password="admin-pass",
        role="admin",
    )


@pytest_asyncio.fixture()
async def customer(db_session):
    return await UserService(db_session).create_user(
        name="Asha Customer",
        email="asha@foodiii.test",
        password="asha-pass",
        location="12 MG Road, Pune",
        mobile_no="9876543210",
    )


def bearer(user) -> dict[str, str]:
    token = create_access_token(str(user.id), role=user.role, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture()
def user_headers(customer):
    return bearer(customer)


# ─── Realtime ───────────────────────────────────────────


class FakeChannel:
    """In-memory stand-in for a dashboard WebSocket."""

    def __init__(self, is_open: bool = True, fail_with: Exception | None = None):
        self.is_open = is_open
        self.fail_with = fail_with
        self.frames: list[str] = []

    async def send_text(self, data: str) -> None:
        if self.fail_with:
            raise self.fail_with
        self.frames.append(data)


@pytest.fixture()
def fake_channel_cls():
    return FakeChannel
