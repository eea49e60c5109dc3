"""
Pytest configuration and fixtures for Mesa Networks API tests.

This module provides:
- Test settings (SQLite database, cache and rate limiting off, cheap Argon2)
- A fresh database per test with the system roles seeded
- An async HTTP client bound to the application
- User factories and a login helper returning Bearer headers
"""

# Set environment variables BEFORE importing anything from mesanet
import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-session-tokens-0123456789")
os.environ.setdefault(
    "TWO_FACTOR_ENCRYPTION_KEY",
    "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff",
)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["ENVIRONMENT"] = "development"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["COOKIE_SECURE"] = "false"
os.environ["REQUIRE_EMAIL_VERIFICATION"] = "true"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "8"
os.environ["ARGON2_PARALLELISM"] = "1"
os.environ["TASK_RETRY_DELAY_SECONDS"] = "0"

from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from mesanet.core.config import settings
from mesanet.core.security import hash_password
from mesanet.core.tasks import task_queue
from mesanet.main import app
from mesanet.models.base import Base
from mesanet.models.enums import SystemRole
from mesanet.models.user import User
from mesanet.repositories.role_repository import RoleRepository
from mesanet.services.role_service import RoleService

API = settings.api_prefix
DEFAULT_PASSWORD = "Str0ng!Passw0rd"


# ============================================================================
# Database Fixtures
# ============================================================================
@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a test database engine.

    Every test gets its own SQLite file, so no cleanup between tests is
    needed.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the system roles already seeded."""
    factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        await RoleService(session).ensure_system_roles()
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Database session for direct assertions against stored rows."""
    async with session_factory() as session:
        yield session


# ============================================================================
# FastAPI Client Fixtures
# ============================================================================
@pytest_asyncio.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async client for the application.

    The lifespan does not run under ASGITransport, so the test sessionmaker
    is installed on ``app.state`` directly.
    """
    app.state.sessionmaker = session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    # Let queued notification emails finish inside this event loop
    await task_queue.drain()
    app.state.sessionmaker = None


# ============================================================================
# User Fixtures
# ============================================================================
UserFactory = Callable[..., Awaitable[User]]


@pytest_asyncio.fixture
async def make_user(session_factory) -> UserFactory:
    """
    Factory creating users directly in the database.

    Usage:
        user = await make_user("someone@example.com", roles=["MANAGER"])
    """

    async def _make_user(
        email: str,
        *,
        password: str = DEFAULT_PASSWORD,
        roles: Sequence[str] = (SystemRole.USER.value,),
        email_verified: bool = True,
        is_active: bool = True,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> User:
        async with session_factory() as session:
            role_rows = await RoleRepository(session).get_by_names(list(roles))
            user = User(
                email=email.lower(),
                first_name=first_name,
                last_name=last_name,
                password_hash=hash_password(password),
                is_active=is_active,
                email_verified=email_verified,
                two_factor_enabled=False,
                roles=role_rows,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    """Verified user with the USER role."""
    return await make_user("testuser@example.com", first_name="Tess", last_name="Tester")


@pytest_asyncio.fixture
async def manager_user(make_user) -> User:
    """Verified user with the MANAGER role."""
    return await make_user(
        "manager@example.com",
        roles=[SystemRole.MANAGER.value],
        first_name="Morgan",
        last_name="Manager",
    )


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    """Verified user with the ADMIN role."""
    return await make_user(
        "admin@example.com",
        roles=[SystemRole.ADMIN.value],
        first_name="Ada",
        last_name="Admin",
    )


@pytest_asyncio.fixture
async def super_admin_user(make_user) -> User:
    """Verified user with the SUPER_ADMIN role."""
    return await make_user(
        "root@example.com",
        roles=[SystemRole.SUPER_ADMIN.value],
        first_name="Sam",
        last_name="Super",
    )


# ============================================================================
# Authentication Helpers
# ============================================================================
@pytest_asyncio.fixture
async def login(async_client) -> Callable[..., Awaitable[dict[str, str]]]:
    """
    Sign a user in and return Authorization headers for the session.

    The session cookie is cleared from the client afterwards, so several
    users can act through the same client via their headers.
    """

    async def _login(email: str, password: str = DEFAULT_PASSWORD) -> dict[str, str]:
        response = await async_client.post(
            f"{API}/auth/login",
            json={"email": email, "password": password},
        )
        assert response.status_code == 200, response.text
        token = response.cookies.get(settings.session_cookie_name)
        assert token, "login did not set a session cookie"
        async_client.cookies.clear()
        return {"Authorization": f"Bearer {token}"}

    return _login
