"""
Revenue analytics aggregator.

Reads committed ledger rows through a read-only transaction and derives the
revenue snapshot. Nothing here writes.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.db.context import readonly
from common.db.scoped import transaction
from packages.analytics.models.domain.revenue import RevenueSnapshot
from packages.billing.models.domain.enums import SubscriptionStatus, TransactionStatus
from packages.billing.models.domain.metadata import OneTimePurchaseMetadata
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.transactions import PaymentTransaction
from packages.billing.repositories.plan_repository import PlanRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.transaction_repository import (
    PaymentTransactionRepository,
)
from packages.money.services.money_service import MoneyService, round_half_up

logger = get_logger(__name__)

_CONFIGURED = object()
_SETTLED = (TransactionStatus.SUCCEEDED, TransactionStatus.FAILED)


def percentage(part: int, whole: int) -> float:
    """part / whole * 100 to two decimals; 0 when `whole` is 0."""
    if whole == 0:
        return 0.0
    value = Decimal(part) * 100 / Decimal(whole)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _canceled_by(subscription: Subscription, moment: datetime) -> bool:
    return subscription.canceled_at is not None and subscription.canceled_at <= moment


def _active_at(subscription: Subscription, as_of: datetime) -> bool:
    """
    Paying subscription at `as_of`.

    Status history is not kept: a subscription canceled after `as_of` counts as
    active then; any other one is judged by its current status.
    """
    if subscription.status == SubscriptionStatus.CANCELED:
        return subscription.canceled_at is not None and subscription.canceled_at > as_of
    return subscription.status == SubscriptionStatus.ACTIVE


class RevenueAnalyticsService:
    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        transaction_repo: Optional[PaymentTransactionRepository] = None,
        plan_repo: Optional[PlanRepository] = None,
        money: Optional[MoneyService] = None,
        reporting_currency: Optional[str] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.transaction_repo = transaction_repo or PaymentTransactionRepository()
        self.plan_repo = plan_repo or PlanRepository()
        self.money = money or MoneyService()
        self.reporting_currency = reporting_currency or settings.reporting_currency

    @trace_span
    @readonly
    async def compute_snapshot(
        self,
        as_of: Optional[datetime] = None,
        churn_window_days=_CONFIGURED,
    ) -> RevenueSnapshot:
        """
        Revenue metrics over rows created at or before `as_of`.

        Args:
            as_of: Snapshot time, default now
            churn_window_days: Churn cohort window; None for all-time. Defaults
                to the configured window.
        """
        as_of = as_of or utcnow()
        if churn_window_days is _CONFIGURED:
            churn_window_days = settings.churn_window_days
        currency = self.money.require_currency(self.reporting_currency).code

        async with transaction(readonly=True):
            subscriptions = await self.subscription_repo.list_as_of(as_of)
            transactions = await self.transaction_repo.list_as_of(as_of)
            plans = await self.plan_repo.get_many(sorted({s.plan_id for s in subscriptions}))

        # Checkouts that never converted are not subscribers
        cohort = [s for s in subscriptions if s.status != SubscriptionStatus.PENDING]
        active = [s for s in cohort if _active_at(s, as_of)]

        mrr = self._monthly_recurring_revenue(active, plans, currency)
        one_time = [
            t
            for t in transactions
            if t.status == TransactionStatus.SUCCEEDED
            and isinstance(t.transaction_metadata, OneTimePurchaseMetadata)
        ]
        one_time_revenue = self._sum_converted(one_time, currency)
        collected = self._sum_converted(
            (
                t
                for t in transactions
                if t.status == TransactionStatus.SUCCEEDED and t.subscription_id is not None
            ),
            currency,
        )

        users = {s.user_id for s in cohort} | {t.user_id for t in one_time}
        arpu = (
            round_half_up(Decimal(mrr + one_time_revenue) / len(users)) if users else 0
        )

        churn_cohort, churned = self._churn(cohort, as_of, churn_window_days)

        settled = [t for t in transactions if t.status in _SETTLED]
        succeeded = sum(1 for t in settled if t.status == TransactionStatus.SUCCEEDED)

        snapshot = RevenueSnapshot(
            as_of=as_of,
            currency=currency,
            churn_window_days=churn_window_days,
            monthly_recurring_revenue=mrr,
            subscription_revenue=mrr,
            collected_subscription_revenue=collected,
            one_time_purchase_revenue=one_time_revenue,
            average_revenue_per_user=arpu,
            total_users=len(users),
            total_subscriptions=churn_cohort,
            active_subscriptions=len(active),
            canceled_subscriptions=churned,
            churn_rate=percentage(churned, churn_cohort),
            succeeded_transactions=succeeded,
            total_transactions=len(settled),
            payment_success_rate=percentage(succeeded, len(settled)),
        )
        logger.info(
            f"Computed revenue snapshot as of {as_of.isoformat()}",
            extra={
                "mrr": mrr,
                "currency": currency,
                "active_subscriptions": len(active),
                "churn_rate": snapshot.churn_rate,
            },
        )
        return snapshot

    def _monthly_recurring_revenue(
        self, active: list[Subscription], plans: dict[str, Plan], currency: str
    ) -> int:
        """Monthly-normalized plan prices, summed per plan currency and rounded once."""
        per_currency: dict[str, Decimal] = defaultdict(Decimal)
        for subscription in active:
            plan = plans.get(subscription.plan_id)
            if plan is None:
                logger.warning(
                    f"Subscription {subscription.id} references unknown plan {subscription.plan_id}"
                )
                continue
            per_currency[plan.currency] += plan.monthly_price_for(subscription.billing_cycle)

        return sum(
            self.money.convert(round_half_up(total), code, currency)
            for code, total in per_currency.items()
        )

    def _sum_converted(self, transactions: Iterable[PaymentTransaction], currency: str) -> int:
        return sum(self.money.convert(t.amount, t.currency, currency) for t in transactions)

    def _churn(
        self,
        cohort: list[Subscription],
        as_of: datetime,
        window_days: Optional[int],
    ) -> tuple[int, int]:
        """
        (cohort size, churned) for the churn rate.

        All-time: every subscription so far, churned if canceled by `as_of`.
        Windowed: subscriptions still live at the window start, churned if
        canceled inside (window start, as_of].
        """
        if window_days is None:
            return len(cohort), sum(1 for s in cohort if _canceled_by(s, as_of))

        window_start = as_of - timedelta(days=window_days)
        live = [s for s in cohort if not _canceled_by(s, window_start)]
        return len(live), sum(1 for s in live if _canceled_by(s, as_of))
