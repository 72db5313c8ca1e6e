"""Pytest configuration and fixtures for backend tests.

Database Handling:
- Uses TEST_DATABASE_URL when set (e.g. a PostgreSQL URL with asyncpg)
- Otherwise runs against an in-memory SQLite database via aiosqlite
"""

import os
import time
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Set test environment variables before importing app modules
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ.pop("ADMIN_LOGIN_SECRET", None)
os.environ.pop("DEFAULT_ADMIN_USERNAME", None)
os.environ.pop("DEFAULT_ADMIN_PASSWORD", None)

# Test credentials
TEST_ADMIN_USERNAME = "admin"
TEST_ADMIN_PASSWORD = "correct-horse-battery"
TEST_CUSTOMER_EMAIL = "shopper@example.com"
TEST_CUSTOMER_PASSWORD = "shopper-password"
TEST_TOKEN_TTL = timedelta(minutes=20)


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, start: float | None = None):
        # Whole seconds keep expiresIn assertions exact
        self.now = float(int(time.time())) if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_service(clock):
    """Token service on the controllable clock."""
    from storefront.services.tokens import TokenService

    return TokenService(
        secret_key=os.environ["JWT_SECRET_KEY"],
        ttl=TEST_TOKEN_TTL,
        clock=clock,
    )


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with all tables for one test."""
    import storefront.models  # noqa: F401
    from storefront.core.database import Base

    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection keeps the in-memory database alive
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

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
async def async_client(
    db_session: AsyncSession, token_service
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and token service overrides."""
    from storefront.core.database import get_db
    from storefront.main import app
    from storefront.services.tokens import get_token_service

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_service] = lambda: token_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_secret(monkeypatch):
    """Require a secondary secret on admin login for the duration of a test."""
    from storefront.core import settings

    monkeypatch.setattr(settings, "admin_login_secret", "correct")
    return "correct"


# --- Account Factories ---


@pytest.fixture
def admin_user_factory(db_session):
    """Factory for creating test admin users."""
    from storefront.models import AdminUser
    from storefront.services.auth import hash_password

    async def _create_admin_user(
        username: str = TEST_ADMIN_USERNAME,
        password: str = TEST_ADMIN_PASSWORD,
    ) -> AdminUser:
        user = AdminUser(
            username=username,
            password_hash=hash_password(password),
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.refresh(user)
        return user

    return _create_admin_user


@pytest_asyncio.fixture
async def admin_user(admin_user_factory):
    """Create a test admin user."""
    return await admin_user_factory()


@pytest.fixture
def customer_factory(db_session):
    """Factory for creating test customers."""
    from storefront.models import Customer
    from storefront.services.auth import hash_password

    async def _create_customer(
        email: str = TEST_CUSTOMER_EMAIL,
        password: str = TEST_CUSTOMER_PASSWORD,
        **fields,
    ) -> Customer:
        customer = Customer(
            email=email,
            password_hash=hash_password(password),
            **fields,
        )
        db_session.add(customer)
        await db_session.flush()
        await db_session.refresh(customer)
        return customer

    return _create_customer


@pytest_asyncio.fixture
async def customer(customer_factory):
    """Create a test customer."""
    return await customer_factory(first_name="Hana", last_name="Sato")


@pytest.fixture
def admin_token(admin_user, token_service) -> str:
    """A valid admin session token."""
    from storefront.services.tokens import ADMIN_KIND

    return token_service.issue(admin_user.id, ADMIN_KIND).token


@pytest.fixture
def admin_headers(admin_token) -> dict[str, str]:
    """Headers with an admin bearer token."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def customer_headers(customer, token_service) -> dict[str, str]:
    """Headers with a customer bearer token."""
    from storefront.services.tokens import CUSTOMER_KIND

    token = token_service.issue(customer.id, CUSTOMER_KIND).token
    return {"Authorization": f"Bearer {token}"}


# --- Pytest Hooks for Auto-Marking ---


def pytest_collection_modifyitems(config, items):
    """Mark tests as 'integration' when they touch the database, 'unit' otherwise."""
    integration_fixtures = {"db_session", "db_engine", "async_client"}

    for item in items:
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue

        if hasattr(item, "fixturenames") and integration_fixtures & set(item.fixturenames):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
