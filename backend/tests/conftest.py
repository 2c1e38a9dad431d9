import socket
from collections.abc import AsyncGenerator, Iterator

import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.models.base import Base
from app.providers import factory
from app.providers.mail.mock_adapter import MockMailProvider

# Same server and role, separate test database
TEST_DATABASE_URL = make_url(settings.database_url).set(
    database=f"{settings.database_name}_test"
)

# Security: test-only secrets. Production uses real secrets from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_OTP_SECRET = "test-otp-hash-secret-for-unit-tests-only"  # nosec B105  # gitleaks:allow

TEST_ADMIN_EMAIL = "admin@example.org"
TEST_ADMIN_PASSWORD = "correct horse battery staple"  # nosec B105

# Low bcrypt cost keeps admin fixtures fast
_TEST_BCRYPT_ROUNDS = 4


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    Provides clear skip message to help diagnose CI/local issues.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine.

    Concurrency tests open one session per simulated request.
    """
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession):
    """Seed-provisioned admin account with a known password.

    Args:
        db_session: Database session from db_session fixture.

    Yields:
        User model instance with the admin role.
    """
    from app.repositories.user_repository import UserRepository

    password_hash = bcrypt.hashpw(
        TEST_ADMIN_PASSWORD.encode(), bcrypt.gensalt(rounds=_TEST_BCRYPT_ROUNDS)
    ).decode()
    user = await UserRepository.provision_admin(
        db_session, email=TEST_ADMIN_EMAIL, password_hash=password_hash, name="Admin"
    )
    await db_session.commit()
    yield user


# =============================================================================
# Mail Fixtures
# =============================================================================


@pytest.fixture
def mock_mail() -> Iterator[MockMailProvider]:
    """Fixture that provides the mock mail provider and resets after test.

    Injects the mock into the factory singleton so every code path that
    resolves the provider (endpoints included) delivers into its outbox.

    Yields:
        MockMailProvider instance.
    """
    mock = MockMailProvider()
    factory.set_mail_provider(mock)

    yield mock

    factory.reset_providers()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    mock_mail,  # noqa: ARG001 - ensures mail goes to the mock outbox
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the test database.

    Sets up:
    - Test database connection via dependency override
    - Mock mail provider
    - httpx.AsyncClient with ASGI transport (cookies persist across calls)

    Args:
        session_factory: Test session factory.
        mock_mail: Mock mail provider.

    Yields:
        Configured AsyncClient for making API requests.
    """
    from app.core.database import get_db
    from app.main import app

    # Override get_db to use test database, same commit/rollback contract
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def auth_settings() -> Iterator[None]:
    """Pin auth secrets and OTP parameters to known test values.

    Yields:
        None (autouse fixture).
    """
    overrides = {
        "auth_secret": SecretStr(TEST_AUTH_SECRET),
        "otp_hash_secret": SecretStr(TEST_OTP_SECRET),
        "auth_cookie_secure": False,
        "otp_code_length": 6,
        "otp_code_ttl_minutes": 10,
        "otp_max_verify_attempts": 5,
        "otp_issue_limit": 3,
        "otp_issue_window_minutes": 15,
        "otp_verify_limit": 10,
        "otp_verify_window_minutes": 15,
        "otp_admin_login_enabled": False,
        "mail_provider": "mock",
    }
    original = {name: getattr(settings, name) for name in overrides}
    for name, value in overrides.items():
        setattr(settings, name, value)

    yield

    for name, value in original.items():
        setattr(settings, name, value)
    factory.reset_providers()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable per-client (slowapi) rate limiting during tests.

    The per-email limits in the database stay active; those are what the
    sign-in tests exercise.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    # Store original state and disable
    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    # Restore original state
    limiter.enabled = original_enabled
