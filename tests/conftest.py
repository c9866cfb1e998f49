"""
Pytest configuration and core fixtures.

Every test gets its own SQLite database file created from the model metadata,
a fresh in-memory token version registry and rate limiter, and a mocked OTP
email sender. All fixtures are function-scoped for complete test isolation.
"""

import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


TEST_PASSWORD = "secret-pass-1"


def pytest_configure(config):
    """Configure pytest with custom settings."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["DEBUG"] = "true"
    os.environ["BCRYPT_ROUNDS"] = "4"
    os.environ["REDIS_URL"] = ""
    os.environ["GOOGLE_CLIENT_ID"] = "test-google-client-id"
    os.environ["FACEBOOK_APP_ID"] = "test-facebook-app-id"


@pytest.fixture
async def db_engine(tmp_path):
    """Create a throwaway SQLite database with every table."""
    from taskdesk.core.db import Base
    import taskdesk.core.db.models  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'taskdesk_test.db'}",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app():
    """Create FastAPI application for testing."""
    from taskdesk.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
async def client(app, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client bound to the test database.

    Each request gets its own session from the test session factory, the
    same way the real dependency opens one per request.
    """
    from taskdesk.core.dependencies import get_async_session

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_async_session, None)


@pytest.fixture(autouse=True)
def fresh_services():
    """Install fresh in-memory token version and rate limit state per test."""
    from taskdesk.core.config import settings
    from taskdesk.core.services.otp import OTPService
    from taskdesk.core.services.rate_limit import RateLimiter
    from taskdesk.core.services.session import SessionTokenService
    from taskdesk.core.services.template import Renderer
    from taskdesk.core.services.token_version import TokenVersionRegistry

    SessionTokenService.init(registry=TokenVersionRegistry(backend="memory"))
    OTPService.init(limiter=RateLimiter(backend="memory"))
    Renderer.initialize(settings.TEMPLATES_DIR)
    yield


@pytest.fixture(autouse=True)
def mock_otp_email():
    """Auto-mock OTP emails so no request reaches Brevo.

    The mock records every call, so tests read the plaintext code from
    ``mock_otp_email.call_args.kwargs["otp_code"]``.
    """
    with patch(
        "taskdesk.core.services.otp.EmailManagerService.send_otp_email",
        new_callable=AsyncMock,
    ) as mock_send:
        yield mock_send


async def _create_user(session: AsyncSession, email: str, verified: bool):
    from taskdesk.core.db.models import User
    from taskdesk.core.utils import hash_password

    user = User(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        first_name="Test",
        last_name="User",
        verified=verified,
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession):
    return await _create_user(db_session, "testuser@mail.com", verified=True)


@pytest.fixture
async def test_user_unverified(db_session: AsyncSession):
    return await _create_user(db_session, "unverified@mail.com", verified=False)


@pytest.fixture
async def auth_headers(test_user) -> dict[str, str]:
    """Issue a login token for the test user."""
    from taskdesk.core.enums import TokenKind
    from taskdesk.core.services.session import SessionTokenService

    token = await SessionTokenService.issue(test_user.id, TokenKind.LOGIN)
    return {"Authorization": f"Bearer {token}"}
