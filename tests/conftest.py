# Shared pytest configuration and fixtures for all test types
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("INTERNAL_API_TOKEN", "test-internal-token")
os.environ.setdefault("LEMON_SQUEEZY_WEBHOOK_SECRET", "test-webhook-secret")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from datetime import datetime, timezone, timedelta  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from slowapi import Limiter  # noqa: E402
from slowapi.util import get_remote_address  # noqa: E402
from unittest.mock import patch  # noqa: E402

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
    enabled=False,
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.core.config import settings  # noqa: E402
from common.db.base import Base  # noqa: E402
from packages.billing.models.database import (  # noqa: E402, F401
    AiUsageEntity,
    SubscriptionEntity,
)
from packages.billing.models.domain.enums import (  # noqa: E402
    BillingInterval,
    PlanId,
    SubscriptionStatus,
)
from packages.meetings.models.database.meeting import MeetingEntity  # noqa: E402
from packages.users.models.database.user import UserEntity  # noqa: E402

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so every transaction()
    commits into a savepoint and the outer rollback still cleans up.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


async def _add(db: AsyncSession, entity):
    db.add(entity)
    await db.commit()
    await db.refresh(entity)
    return entity


@pytest_asyncio.fixture(scope="function")
async def free_user(test_db: AsyncSession):
    """A free-plan user who has never started a trial."""
    return await _add(test_db, UserEntity(email="free@example.com", current_plan="free"))


@pytest_asyncio.fixture(scope="function")
async def plus_user(test_db: AsyncSession):
    """A Plus user with an active monthly subscription renewed on the 1st."""
    user = await _add(test_db, UserEntity(email="plus@example.com", current_plan="plus"))
    await _add(
        test_db,
        SubscriptionEntity(
            user_id=user.id,
            provider_subscription_id="sub_plus_1",
            plan_id=PlanId.PLUS.value,
            status=SubscriptionStatus.ACTIVE.value,
            billing_interval=BillingInterval.MONTHLY.value,
            renew_at=datetime(2025, 4, 1, tzinfo=timezone.utc),
        ),
    )
    return user


@pytest_asyncio.fixture(scope="function")
async def make_meeting(test_db: AsyncSession):
    """Factory for closed or open meetings written straight to the table."""

    async def _make(user_id: int, started_at: datetime, minutes: int = None, **kwargs):
        ended_at = started_at + timedelta(minutes=minutes) if minutes is not None else None
        return await _add(
            test_db,
            MeetingEntity(
                user_id=user_id,
                started_at=started_at,
                ended_at=ended_at,
                duration_minutes=minutes,
                end_reason="user" if minutes is not None else None,
                **kwargs,
            ),
        )

    return _make


@pytest.fixture
def auth_headers():
    """Gateway headers for a given user id."""

    def _headers(user_id: int) -> dict[str, str]:
        return {
            "X-Internal-Token": settings.internal_api_token,
            "X-User-Id": str(user_id),
        }

    return _headers


@pytest_asyncio.fixture(scope="function")
async def client():
    """Create a test client."""
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
