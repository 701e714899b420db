"""Shared test fixtures for pytest"""
import os

# Settings are read at import time; configure before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["REDIS_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["TELEMETRY_ENABLED"] = "false"

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import shopfloor.infrastructure.persistence.models  # noqa: F401  (registers tables)
from main import app
from shopfloor.application.services.rbac_seed import seed_all
from shopfloor.infrastructure.persistence.database import (Base, get_db,
                                                           get_db_transactional)
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.infrastructure.security.jwt import create_access_token
from shopfloor.presentation.api.dependencies import get_realtime_notifier
from shopfloor.presentation.middleware.rate_limit import limiter

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "password123"


class RecordingNotifier:
    """Collects emitted real-time events instead of delivering them"""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    async def emit(self, user_id: str, event: str, data: Any = None) -> None:
        self.events.append((user_id, event, data))

    def for_user(self, user_id: str) -> list[tuple[str, Any]]:
        return [(event, data) for uid, event, data in self.events if uid == user_id]


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
async def test_engine():
    """In-memory SQLite shared by every connection of the test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def client(test_db, notifier):
    """HTTP client for API testing"""

    async def override_get_db():
        yield test_db

    async def override_get_db_transactional():
        try:
            yield test_db
            await test_db.commit()
        except Exception:
            await test_db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_db_transactional] = override_get_db_transactional
    app.dependency_overrides[get_realtime_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def roles(test_db):
    """Permission catalog and default roles"""
    seeded = await seed_all(test_db)
    await test_db.commit()
    return seeded


@pytest.fixture
def make_user(test_db, roles):
    """Factory creating an active user holding the given default roles"""

    async def _make(login: str, *role_codes: str, first_name: str = "Test"):
        repo = UserRepository(test_db, enable_audit=False)
        user = await repo.create_user(
            login=login,
            email=f"{login}@shopfloor.io",
            password=TEST_PASSWORD,
            first_name=first_name,
            last_name=login.capitalize(),
        )
        await repo.set_roles(user, [roles[code].id for code in role_codes])
        await test_db.commit()
        return user

    return _make


@pytest.fixture
async def admin_user(make_user):
    return await make_user("admin", "admin", first_name="Ada")


@pytest.fixture
async def manager_user(make_user):
    return await make_user("manager", "manager", first_name="Mona")


@pytest.fixture
async def employee_user(make_user):
    return await make_user("employee", "employee", first_name="Emil")


@pytest.fixture
async def other_employee(make_user):
    return await make_user("worker", "employee", first_name="Wanda")


@pytest.fixture
def auth_headers():
    """Bearer header for a user: auth_headers(user)"""

    def _headers(user) -> dict[str, str]:
        token = create_access_token(data={"sub": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers
