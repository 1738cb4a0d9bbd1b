"""
Unit tests for usage metering and overage computation.
"""

import asyncio

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.exceptions import NotFoundError, PeriodClosed, ValidationError
from common.db.base import Base
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.services.plans_service import PlansService
from packages.usage.models.domain.usage import UsageType
from packages.usage.repositories.usage_record_repository import UsageRecordRepository
from packages.usage.services.usage_meter import UsageMeterService, overage_units

PERIOD_START = datetime(2026, 10, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2026, 11, 1, tzinfo=timezone.utc)
MID_PERIOD = datetime(2026, 10, 15, tzinfo=timezone.utc)


@pytest.fixture
def meter():
    return UsageMeterService()


class TestRecordUsage:
    async def test_first_record_creates_period(self, meter, sample_subscription):
        record = await meter.record_usage(
            sample_subscription.id,
            UsageType.API_CALLS,
            5000,
            PERIOD_START,
            PERIOD_END,
            now=MID_PERIOD,
        )

        assert record.amount == Decimal("5000")
        assert record.rate_per_unit == Decimal("0.001")
        assert record.overage_cost == Decimal("0")

    async def test_usage_accumulates_within_period(self, meter, sample_subscription):
        for amount in (5000, 3750):
            record = await meter.record_usage(
                sample_subscription.id,
                "api_calls",
                amount,
                PERIOD_START,
                PERIOD_END,
                now=MID_PERIOD,
            )

        assert record.amount == Decimal("8750")
        # Pro includes 10000 calls
        assert record.overage_cost == Decimal("0")

        records = await UsageRecordRepository().list_for_subscription(sample_subscription.id)
        assert len(records) == 1

    async def test_overage_is_charged_beyond_included_units(
        self, meter, sample_subscription
    ):
        await meter.record_usage(
            sample_subscription.id, "api_calls", 8750, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )
        record = await meter.record_usage(
            sample_subscription.id, "api_calls", 2000, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )

        assert record.amount == Decimal("10750")
        # 750 calls over the limit at 0.001
        assert record.overage_cost == Decimal("0.75")

    async def test_closed_period_is_rejected(self, meter, sample_subscription):
        with pytest.raises(PeriodClosed):
            await meter.record_usage(
                sample_subscription.id,
                "storage",
                1,
                PERIOD_START,
                PERIOD_END,
                now=PERIOD_END,
            )

        records = await UsageRecordRepository().list_for_subscription(sample_subscription.id)
        assert records == []

    async def test_future_period_is_rejected(self, meter, sample_subscription):
        with pytest.raises(ValidationError):
            await meter.record_usage(
                sample_subscription.id,
                "storage",
                1,
                PERIOD_START,
                PERIOD_END,
                now=PERIOD_START - timedelta(seconds=1),
            )

    async def test_overlapping_period_is_rejected(self, meter, sample_subscription):
        await meter.record_usage(
            sample_subscription.id, "bandwidth", 10, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )

        with pytest.raises(ValidationError):
            await meter.record_usage(
                sample_subscription.id,
                "bandwidth",
                10,
                PERIOD_START + timedelta(days=5),
                PERIOD_END + timedelta(days=5),
                now=MID_PERIOD,
            )

    async def test_other_usage_types_do_not_overlap(self, meter, sample_subscription):
        await meter.record_usage(
            sample_subscription.id, "bandwidth", 10, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )
        record = await meter.record_usage(
            sample_subscription.id,
            "transactions",
            10,
            PERIOD_START + timedelta(days=5),
            PERIOD_END + timedelta(days=5),
            now=MID_PERIOD,
        )

        assert record.usage_type == UsageType.TRANSACTIONS

    @pytest.mark.parametrize("amount", [0, -5, "abc", "NaN"])
    async def test_invalid_amount(self, meter, sample_subscription, amount):
        with pytest.raises(ValidationError):
            await meter.record_usage(
                sample_subscription.id, "api_calls", amount, PERIOD_START, PERIOD_END, now=MID_PERIOD
            )

    async def test_unknown_usage_type(self, meter, sample_subscription):
        with pytest.raises(ValidationError):
            await meter.record_usage(
                sample_subscription.id, "sms", 1, PERIOD_START, PERIOD_END, now=MID_PERIOD
            )

    async def test_inverted_period(self, meter, sample_subscription):
        with pytest.raises(ValidationError):
            await meter.record_usage(
                sample_subscription.id, "api_calls", 1, PERIOD_END, PERIOD_START, now=MID_PERIOD
            )

    async def test_unknown_subscription(self, meter, plans):
        with pytest.raises(NotFoundError):
            await meter.record_usage(
                999, "api_calls", 1, PERIOD_START, PERIOD_END, now=MID_PERIOD
            )


@pytest_asyncio.fixture
async def separate_connections(tmp_path, monkeypatch):
    """File-backed database where every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'usage.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocalReadonly", factory)

    await PlansService().seed_default_catalog()
    async with factory() as session:
        subscription = SubscriptionEntity(
            user_id=1,
            plan_id="pro",
            status="active",
            billing_cycle="monthly",
            current_period_start=PERIOD_START,
            current_period_end=PERIOD_END,
        )
        session.add(subscription)
        await session.commit()
        subscription_id = subscription.id

    yield subscription_id
    await engine.dispose()


class TestConcurrentRecording:
    async def test_concurrent_increments_add_up(self, meter, separate_connections):
        amounts = [1500, 2500, 250, 4000, 750, 1000, 1250, 500]

        await asyncio.gather(
            *(
                meter.record_usage(
                    separate_connections,
                    UsageType.API_CALLS,
                    amount,
                    PERIOD_START,
                    PERIOD_END,
                    now=MID_PERIOD,
                )
                for amount in amounts
            )
        )

        [record] = await UsageRecordRepository().list_for_subscription(separate_connections)
        assert record.amount == Decimal(sum(amounts))
        # 11750 against 10000 included at 0.001 per call
        assert record.overage_cost == Decimal("1.75")


class TestUsageSummary:
    async def test_summary_of_current_period(self, meter, sample_subscription):
        await meter.record_usage(
            sample_subscription.id, "api_calls", 10750, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )
        await meter.record_usage(
            sample_subscription.id, "storage", 4, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )

        items = await meter.get_usage_summary(sample_subscription.id, at=MID_PERIOD)

        by_type = {item.usage_type: item for item in items}
        api_calls = by_type[UsageType.API_CALLS]
        assert api_calls.included == Decimal("10000")
        assert api_calls.overage_units == Decimal("750")
        assert api_calls.overage_cost == Decimal("0.75")

        storage = by_type[UsageType.STORAGE]
        assert storage.overage_units == Decimal("0")
        assert storage.overage_cost == Decimal("0")

    async def test_summary_outside_period_is_empty(self, meter, sample_subscription):
        await meter.record_usage(
            sample_subscription.id, "api_calls", 10, PERIOD_START, PERIOD_END, now=MID_PERIOD
        )

        assert await meter.get_usage_summary(sample_subscription.id, at=PERIOD_END) == []


class TestOverageUnits:
    def test_unlimited(self):
        assert overage_units(Decimal("1000000"), None) == Decimal(0)

    def test_within_limit(self):
        assert overage_units(Decimal("5"), Decimal("10")) == Decimal(0)

    def test_beyond_limit(self):
        assert overage_units(Decimal("12.5"), Decimal("10")) == Decimal("2.5")
