"""
Repository for usage records.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import select, case, literal
from sqlalchemy.dialects import postgresql, sqlite

from common.core.otel_axiom_exporter import trace_span
from common.db.base import utcnow
from common.repositories.base import BaseRepository
from packages.usage.models.database.usage_record import UsageRecordEntity, USAGE_NUMERIC
from packages.usage.models.domain.usage import UsageRecord

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UsageRecordRepository(BaseRepository[UsageRecordEntity, UsageRecord]):
    def __init__(self, db_session=None):
        super().__init__(UsageRecordEntity, UsageRecord, db_session)

    @trace_span
    async def get_for_key(
        self, subscription_id: int, usage_type: str, period_start: datetime
    ) -> Optional[UsageRecord]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageRecordEntity)
                .where(
                    UsageRecordEntity.subscription_id == subscription_id,
                    UsageRecordEntity.usage_type == usage_type,
                    UsageRecordEntity.period_start == period_start,
                )
                .execution_options(populate_existing=True)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def find_conflicting_period(
        self,
        subscription_id: int,
        usage_type: str,
        period_start: datetime,
        period_end: datetime,
    ) -> Optional[UsageRecord]:
        """A record whose period overlaps [period_start, period_end) without being that period."""
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageRecordEntity)
                .where(
                    UsageRecordEntity.subscription_id == subscription_id,
                    UsageRecordEntity.usage_type == usage_type,
                    UsageRecordEntity.period_start < period_end,
                    UsageRecordEntity.period_end > period_start,
                    ~(
                        (UsageRecordEntity.period_start == period_start)
                        & (UsageRecordEntity.period_end == period_end)
                    ),
                )
                .limit(1)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def accumulate(
        self,
        subscription_id: int,
        usage_type: str,
        period_start: datetime,
        period_end: datetime,
        amount: Decimal,
        rate_per_unit: Decimal,
        included: Optional[Decimal],
    ) -> UsageRecord:
        """
        Add `amount` to the period's record, creating it on first use.

        One INSERT ... ON CONFLICT DO UPDATE statement, so concurrent calls for
        the same key add up instead of overwriting each other. The stored
        overage cost is recomputed from the new total in the same statement.

        Args:
            included: Units included by the plan, None for unlimited
        """
        table = UsageRecordEntity.__table__
        now = utcnow()

        async with self._get_session() as session:
            insert = _DIALECT_INSERTS[session.get_bind().dialect.name]
            first_overage = _overage(literal(amount, USAGE_NUMERIC), rate_per_unit, included)
            statement = insert(table).values(
                subscription_id=subscription_id,
                usage_type=usage_type,
                period_start=period_start,
                period_end=period_end,
                amount=amount,
                rate_per_unit=rate_per_unit,
                overage_cost=first_overage,
                created_at=now,
                updated_at=now,
            )
            total = table.c.amount + statement.excluded.amount
            statement = statement.on_conflict_do_update(
                index_elements=["subscription_id", "usage_type", "period_start"],
                set_={
                    "amount": total,
                    "overage_cost": _overage(total, table.c.rate_per_unit, included),
                    "updated_at": now,
                },
            )
            await session.execute(statement)
            await session.flush()

        return await self.get_for_key(subscription_id, usage_type, period_start)

    @trace_span
    async def list_for_period(self, subscription_id: int, at: datetime) -> list[UsageRecord]:
        """Records of the subscription whose period contains `at`."""
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageRecordEntity)
                .where(
                    UsageRecordEntity.subscription_id == subscription_id,
                    UsageRecordEntity.period_start <= at,
                    UsageRecordEntity.period_end > at,
                )
                .order_by(UsageRecordEntity.usage_type)
                .execution_options(populate_existing=True)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_for_subscription(self, subscription_id: int) -> list[UsageRecord]:
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageRecordEntity)
                .where(UsageRecordEntity.subscription_id == subscription_id)
                .order_by(UsageRecordEntity.period_start, UsageRecordEntity.usage_type)
            )
            return self._entities_to_domain(result.scalars().all())


def _overage(total, rate, included: Optional[Decimal]):
    """SQL expression for max(0, total - included) * rate."""
    if included is None:
        return literal(Decimal(0), USAGE_NUMERIC)
    limit = literal(included, USAGE_NUMERIC)
    return case((total > limit, (total - limit) * rate), else_=literal(Decimal(0), USAGE_NUMERIC))
