# Shared pytest configuration and fixtures for all test types
from datetime import datetime, timezone
from typing import Optional

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from slowapi import Limiter
from slowapi.util import get_remote_address
from unittest.mock import patch

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.db.base import Base
from packages.billing.models.database import (  # noqa: F401
    PlanEntity,
    SubscriptionEntity,
    PaymentTransactionEntity,
    BillingHistoryEntity,
    ProcessedEventEntity,
)
from packages.billing.models.domain.enums import BillingCycle, SubscriptionStatus
from packages.billing.models.domain.subscription import Subscription
from packages.billing.services.plans_service import PlansService
from packages.dunning.models.database import DunningCaseEntity  # noqa: F401
from packages.usage.models.database import UsageRecordEntity  # noqa: F401

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

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
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


@pytest_asyncio.fixture(scope="function")
async def client():
    """Create a test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def plans():
    """Seed the default plan catalog (basic, pro, premium)."""
    await PlansService().seed_default_catalog()
    return {p.id: p for p in await PlansService().list_plans()}


@pytest_asyncio.fixture(scope="function")
async def make_subscription(test_db: AsyncSession, plans):
    """Factory for subscriptions in an arbitrary state."""

    async def _make(
        user_id: int = 1,
        plan_id: str = "pro",
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        gateway_customer_id: Optional[str] = "cus_test123",
        gateway_subscription_id: Optional[str] = "sub_test123",
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        canceled_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> Subscription:
        values = {
            "current_period_start": current_period_start,
            "current_period_end": current_period_end,
            "canceled_at": canceled_at,
            "created_at": created_at,
            "gateway_customer_id": gateway_customer_id,
            "gateway_subscription_id": gateway_subscription_id,
        }
        subscription = SubscriptionEntity(
            user_id=user_id,
            plan_id=plan_id,
            status=status.value,
            billing_cycle=billing_cycle.value,
            **{k: v for k, v in values.items() if v is not None},
        )
        test_db.add(subscription)
        await test_db.commit()
        await test_db.refresh(subscription)
        return Subscription.model_validate(subscription)

    return _make


@pytest_asyncio.fixture(scope="function")
async def sample_subscription(make_subscription):
    """An active monthly pro subscription for user 1 with a full period ahead."""
    return await make_subscription(
        current_period_start=datetime(2026, 10, 1, tzinfo=timezone.utc),
        current_period_end=datetime(2026, 11, 1, tzinfo=timezone.utc),
    )

