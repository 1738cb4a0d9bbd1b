"""
Usage meter - accumulates metered usage and computes overage.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from common.core.exceptions import NotFoundError, PeriodClosed, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.db.scoped import transaction
from packages.billing.models.domain.plans import Plan
from packages.billing.repositories.plan_repository import PlanRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.usage.models.domain.usage import UsageRecord, UsageSummaryItem, UsageType
from packages.usage.repositories.usage_record_repository import UsageRecordRepository

logger = get_logger(__name__)


def compute_overage(record: UsageRecord, plan: Plan) -> Decimal:
    """
    Cost of usage beyond the plan's included units.

    max(0, amount - included) * rate_per_unit; zero for unlimited usage types.
    """
    return overage_units(record.amount, plan.usage_limit(record.usage_type.value)) * (
        record.rate_per_unit
    )


def overage_units(amount: Decimal, included: Optional[Decimal]) -> Decimal:
    if included is None:
        return Decimal(0)
    return max(Decimal(0), amount - included)


def _to_usage_type(usage_type: Union[UsageType, str]) -> UsageType:
    try:
        return UsageType(usage_type)
    except ValueError as e:
        raise ValidationError(f"Unknown usage type: {usage_type}") from e


def _to_amount(amount: Union[Decimal, int, str]) -> Decimal:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid usage amount: {amount}") from e
    if not value.is_finite() or value <= 0:
        raise ValidationError("Usage amount must be positive")
    return value


class UsageMeterService:
    """Sole writer of usage records."""

    def __init__(
        self,
        usage_repo: Optional[UsageRecordRepository] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        plan_repo: Optional[PlanRepository] = None,
    ):
        self.usage_repo = usage_repo or UsageRecordRepository()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.plan_repo = plan_repo or PlanRepository()

    async def _plan_for(self, subscription_id: int) -> Plan:
        subscription = await self.subscription_repo.get(subscription_id)
        if not subscription:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        plan = await self.plan_repo.get_by_id(subscription.plan_id)
        if not plan:
            raise NotFoundError(f"Plan '{subscription.plan_id}' not found")
        return plan

    @trace_span
    async def record_usage(
        self,
        subscription_id: int,
        usage_type: Union[UsageType, str],
        amount: Union[Decimal, int, str],
        period_start: datetime,
        period_end: datetime,
        now: Optional[datetime] = None,
    ) -> UsageRecord:
        """
        Add usage to the period's record.

        Raises:
            PeriodClosed: If the period has already ended; the usage is not
                recorded and has to go to the next period or a manual adjustment
            ValidationError: Unknown type, non-positive amount, or a period that
                has not started or overlaps another period
            NotFoundError: If the subscription does not exist
        """
        usage_type = _to_usage_type(usage_type)
        amount = _to_amount(amount)
        now = now or utcnow()

        if period_end <= period_start:
            raise ValidationError("Usage period must end after it starts")
        if now >= period_end:
            logger.warning(
                f"Rejected usage for closed period of subscription {subscription_id}",
                extra={
                    "subscription_id": subscription_id,
                    "usage_type": usage_type.value,
                    "amount": str(amount),
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                },
            )
            raise PeriodClosed(
                f"Billing period ending {period_end.isoformat()} is closed"
            )
        if now < period_start:
            raise ValidationError("Usage period has not started")

        plan = await self._plan_for(subscription_id)

        async with transaction():
            conflicting = await self.usage_repo.find_conflicting_period(
                subscription_id, usage_type.value, period_start, period_end
            )
            if conflicting:
                raise ValidationError(
                    "Usage period overlaps the period starting "
                    f"{conflicting.period_start.isoformat()}"
                )
            record = await self.usage_repo.accumulate(
                subscription_id=subscription_id,
                usage_type=usage_type.value,
                period_start=period_start,
                period_end=period_end,
                amount=amount,
                rate_per_unit=usage_type.default_rate(),
                included=plan.usage_limit(usage_type.value),
            )

        logger.debug(
            f"Recorded {amount} {usage_type.value} for subscription {subscription_id}",
            extra={"subscription_id": subscription_id, "total": str(record.amount)},
        )
        return record

    @trace_span
    async def get_usage_summary(
        self, subscription_id: int, at: Optional[datetime] = None
    ) -> list[UsageSummaryItem]:
        """Usage of the period containing `at` (default now), one item per usage type."""
        at = at or utcnow()
        plan = await self._plan_for(subscription_id)
        records = await self.usage_repo.list_for_period(subscription_id, at)

        items = []
        for record in records:
            included = plan.usage_limit(record.usage_type.value)
            items.append(
                UsageSummaryItem(
                    usage_type=record.usage_type,
                    amount=record.amount,
                    included=included,
                    overage_units=overage_units(record.amount, included),
                    rate_per_unit=record.rate_per_unit,
                    overage_cost=compute_overage(record, plan),
                    period_start=record.period_start,
                    period_end=record.period_end,
                )
            )
        return items
