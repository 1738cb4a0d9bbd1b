"""
Dunning worker - retries due payments and feeds the results back.
"""

from datetime import datetime
from typing import Optional

from common.core.config import settings
from common.core.exceptions import ConflictingWrite, GatewayUnavailable
from common.core.otel_axiom_exporter import get_logger
from common.db.base import utcnow
from common.workers.base_worker import PeriodicWorker
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.services.subscription_service import SubscriptionService
from packages.dunning.models.domain.dunning import DunningCase

logger = get_logger(__name__)


class DunningWorker(PeriodicWorker):
    """
    Scans for due dunning cases on an interval.

    For each due case the open invoice is retried through the payment gateway
    and the result recorded. A case that cannot be retried this round (gateway
    down, subscription locked) stays due and is picked up by the next scan.
    """

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        subscriptions: Optional[SubscriptionService] = None,
        payment: Optional[PaymentProviderInterface] = None,
    ):
        super().__init__(
            "dunning", interval_seconds or settings.dunning_scan_interval_seconds
        )
        self.subscriptions = subscriptions or SubscriptionService()
        self.payment = payment or get_payment_provider()
        self.lock_provider = self.subscriptions.lock_provider

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """Process every due case once. Returns the number of recorded results."""
        now = now or utcnow()
        due = await self.subscriptions.dunning.due_retries(now)
        if due:
            logger.info(f"Found {len(due)} due dunning cases")

        recorded = 0
        for case in due:
            if await self._retry(case, now):
                recorded += 1
        return recorded

    async def _retry(self, case: DunningCase, now: datetime) -> bool:
        if not case.gateway_invoice_id:
            logger.warning(
                f"Dunning case {case.id} has no invoice to retry",
                extra={"case_id": case.id, "subscription_id": case.subscription_id},
            )
            return False

        try:
            succeeded = await self.payment.retry_invoice_payment(case.gateway_invoice_id)
            outcome = await self.subscriptions.record_retry_result(case, succeeded, at=now)
        except (GatewayUnavailable, ConflictingWrite) as e:
            logger.warning(
                f"Dunning retry for case {case.id} deferred: {e}",
                extra={"case_id": case.id, "subscription_id": case.subscription_id},
            )
            return False

        logger.info(
            f"Dunning retry for case {case.id} {'succeeded' if succeeded else 'failed'}",
            extra={
                "case_id": case.id,
                "subscription_id": case.subscription_id,
                "attempt": case.attempt_count,
                "case_status": outcome.case.status.value,
            },
        )
        return outcome.applied
