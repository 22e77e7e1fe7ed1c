"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Uses TEST_DATABASE_URL when set (e.g. a disposable PostgreSQL database)
- Otherwise runs against an in-memory SQLite database via aiosqlite
"""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"

# Set test environment variables before importing app modules
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", SQLITE_MEMORY_URL)
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-0123456789abcdef"
os.environ.setdefault("LOG_LEVEL", "INFO")

TEST_PASSWORD = "testpassword123"
TEST_SECRET = "s" * 32


def _get_database_url() -> str:
    return os.environ.get("TEST_DATABASE_URL", SQLITE_MEMORY_URL)


# --- Login Rate Limiter Reset ---


def _reset_login_rate_limiter():
    """Clear failed-login bookkeeping so tests don't leak 429s into each other."""
    from app.api.auth import _login_attempts

    _login_attempts.clear()


@pytest.fixture(autouse=True)
def reset_login_rate_limiter():
    _reset_login_rate_limiter()
    yield
    _reset_login_rate_limiter()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with all tables for one test."""
    import app.models  # noqa: F401  (registers tables)
    from app.core.database import Base

    url = _get_database_url()
    if make_url(url).get_backend_name() == "sqlite":
        # One shared connection, so every session sees the same in-memory database
        engine = create_async_engine(url, poolclass=StaticPool)
    else:
        engine = create_async_engine(url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def isolated_engine(tmp_path):
    """Engine whose sessions each hold their own connection, foreign keys enforced.

    Stands in for separate API workers. SQLite runs from a file here, since the
    in-memory database only exists on a single shared connection.
    """
    import app.models  # noqa: F401  (registers tables)
    from app.core.database import Base

    url = _get_database_url()
    if make_url(url).get_backend_name() == "sqlite":
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    else:
        engine = create_async_engine(url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def isolated_sessions(isolated_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory over isolated_engine; every call is a new worker session."""
    return async_sessionmaker(isolated_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from app.core.database import get_db
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# --- Session Fixtures ---


@pytest.fixture
def token_config():
    """Session configuration independent of process settings."""
    from app.services.token_codec import TokenConfig

    return TokenConfig(secret_key=TEST_SECRET, ttl=timedelta(hours=24))


@pytest.fixture
def session_manager(token_config, db_session):
    """Session manager backed by the test database."""
    from app.services.session_manager import SessionManager
    from app.services.token_store import TokenRecordStore

    return SessionManager(token_config, TokenRecordStore(db_session))


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating test User objects."""
    from app.models.user import User
    from app.services.auth import hash_password

    counter = 0

    async def _create_user(
        username: str | None = None,
        email: str | None = None,
        password: str = TEST_PASSWORD,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal counter
        counter += 1
        if username is None:
            username = f"user{counter}"
        if email is None:
            email = f"{username}@example.com"

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            is_active=is_active,
            **kwargs,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest_asyncio.fixture
async def test_user(user_factory):
    """A persisted, active user."""
    return await user_factory(username="alice", email="alice@example.com")


@pytest_asyncio.fixture
async def auth_headers(async_client, test_user) -> dict[str, str]:
    """Authorization headers for test_user, obtained through the login endpoint."""
    response = await async_client.post(
        "/api/v1/auth/login",
        json={"login": test_user.username, "password": TEST_PASSWORD},
        headers={"User-Agent": "pytest-client/1.0"},
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


# --- Test Markers ---


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their fixtures.

    - Tests using a database fixture or async_client are marked as 'integration'
    - Everything else is marked as 'unit'
    - Tests can override with explicit markers
    """
    integration_fixtures = {
        "db_session",
        "db_engine",
        "isolated_engine",
        "isolated_sessions",
        "async_client",
    }

    for item in items:
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue

        if hasattr(item, "fixturenames") and integration_fixtures & set(item.fixturenames):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
