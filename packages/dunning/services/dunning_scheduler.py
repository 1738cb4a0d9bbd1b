"""
Dunning scheduler - retry cadence for failed subscription payments.

Case lifecycle:

    payment fails ──> active(attempt 1) ──retry fails──> active(attempt n+1)
                         │                                    │
                         └──payment succeeds──> resolved      └──attempt == max──> exhausted
                                                                  (cancellation intent)

All writes run inside the caller's transaction and under the subscription lock.
"""

from datetime import datetime
from typing import Optional, Sequence

from common.core.config import settings
from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from packages.billing.models.domain.commands import Notify
from packages.billing.models.domain.enums import CancellationReason, NotificationKind
from packages.billing.models.domain.inputs import CancelSubscription
from packages.billing.services.notification_dispatcher import NotificationDispatcher
from packages.dunning.models.domain.dunning import (
    DunningCase,
    DunningCaseCreateModel,
    DunningCaseUpdateModel,
    DunningStatus,
    RetryOutcome,
)
from packages.dunning.policy import next_attempt_date
from packages.dunning.repositories.dunning_case_repository import DunningCaseRepository

logger = get_logger(__name__)


class DunningScheduler:
    """Opens, advances and closes dunning cases."""

    def __init__(
        self,
        repository: Optional[DunningCaseRepository] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        schedule: Optional[Sequence[int]] = None,
        max_attempts: Optional[int] = None,
    ):
        self.repository = repository or DunningCaseRepository()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.schedule = list(schedule or settings.dunning_schedule_days)
        self.max_attempts = max_attempts or settings.dunning_max_attempts

    @trace_span
    async def on_payment_failed(
        self,
        subscription_id: int,
        user_id: int,
        reason: str,
        failed_at: datetime,
        gateway_invoice_id: Optional[str] = None,
    ) -> DunningCase:
        """
        Create or advance the subscription's open case.

        A failure reported at or after the case's next attempt date is the
        result of that attempt and advances the case. An earlier one (a
        redelivery or a second invoice) only refreshes the failure details.
        The returned case is `exhausted` when this failure used up the last
        attempt; the caller then cancels the subscription.
        """
        case = await self.repository.get_open_for_subscription(subscription_id)

        if case is None:
            case = await self.repository.create(
                DunningCaseCreateModel(
                    subscription_id=subscription_id,
                    user_id=user_id,
                    max_attempts=self.max_attempts,
                    first_failure_at=failed_at,
                    next_attempt_date=next_attempt_date(failed_at, 1, self.schedule),
                    failure_reason=reason,
                    gateway_invoice_id=gateway_invoice_id,
                )
            )
            logger.info(
                f"Opened dunning case {case.id} for subscription {subscription_id}",
                extra={
                    "subscription_id": subscription_id,
                    "reason": reason,
                    "next_attempt_date": case.next_attempt_date.isoformat(),
                },
            )
            return case

        details = DunningCaseUpdateModel(
            failure_reason=reason,
            gateway_invoice_id=gateway_invoice_id or case.gateway_invoice_id,
        )
        if case.status == DunningStatus.PAUSED:
            return await self.repository.update(
                case.id, details.model_copy(update={"status": DunningStatus.ACTIVE.value})
            )

        if case.is_due(failed_at):
            await self.repository.update(case.id, details)
            outcome = await self._advance(case, failed_at)
            return outcome.case

        return await self.repository.update(case.id, details)

    @trace_span
    async def due_retries(self, now: Optional[datetime] = None) -> list[DunningCase]:
        """
        Active cases whose next attempt is due.

        Sends the dunning-attempt notification for each case the first time its
        current attempt comes due; later scans of the same attempt stay quiet.
        """
        now = now or utcnow()
        cases = await self.repository.list_due(now)

        for case in cases:
            if await self.repository.claim_attempt_notification(case.id, case.attempt_count):
                await self.dispatcher.dispatch(
                    case.user_id,
                    [
                        Notify(
                            notification=NotificationKind.DUNNING_ATTEMPT,
                            message=(
                                f"Retrying payment, attempt {case.attempt_count} "
                                f"of {case.max_attempts}"
                            ),
                            context={
                                "subscription_id": case.subscription_id,
                                "attempt": case.attempt_count,
                            },
                        )
                    ],
                )
        return cases

    @trace_span
    async def on_retry_result(
        self,
        case_id: int,
        succeeded: bool,
        at: Optional[datetime] = None,
        attempt: Optional[int] = None,
    ) -> RetryOutcome:
        """
        Record the result of a retry.

        Args:
            case_id: Dunning case the retry belongs to
            succeeded: Whether the payment went through
            at: When the retry happened
            attempt: The attempt that was retried. A result for any other
                attempt is stale and ignored.

        Raises:
            NotFoundError: If the case does not exist
        """
        at = at or utcnow()
        case = await self.repository.get(case_id)
        if case is None:
            raise NotFoundError(f"Dunning case {case_id} not found")

        if case.status != DunningStatus.ACTIVE or (
            attempt is not None and attempt != case.attempt_count
        ):
            logger.info(
                f"Ignoring stale retry result for dunning case {case_id}",
                extra={"status": case.status.value, "attempt": attempt},
            )
            return RetryOutcome(case=case, applied=False)

        if succeeded:
            resolved = await self._close(case, DunningStatus.RESOLVED, "payment_succeeded", at)
            return RetryOutcome(case=resolved, recovered=True)

        return await self._advance(case, at)

    @trace_span
    async def resolve(
        self, subscription_id: int, reason: str, at: Optional[datetime] = None
    ) -> Optional[DunningCase]:
        """Close the subscription's open case, if it has one."""
        case = await self.repository.get_open_for_subscription(subscription_id)
        if case is None:
            return None
        return await self._close(case, DunningStatus.RESOLVED, reason, at or utcnow())

    async def _advance(self, case: DunningCase, at: datetime) -> RetryOutcome:
        if case.attempt_count >= case.max_attempts:
            exhausted = await self._close(case, DunningStatus.EXHAUSTED, "attempts_exhausted", at)
            logger.warning(
                f"Dunning exhausted for subscription {case.subscription_id}",
                extra={"case_id": case.id, "attempts": case.attempt_count},
            )
            return RetryOutcome(
                case=exhausted,
                cancellation=CancelSubscription(
                    at=at, reason=CancellationReason.DUNNING_EXHAUSTED
                ),
            )

        attempt = case.attempt_count + 1
        advanced = await self.repository.update(
            case.id,
            DunningCaseUpdateModel(
                attempt_count=attempt,
                last_attempt_at=at,
                next_attempt_date=next_attempt_date(
                    case.first_failure_at, attempt, self.schedule
                ),
            ),
        )
        logger.info(
            f"Dunning case {case.id} advanced to attempt {attempt}",
            extra={"next_attempt_date": advanced.next_attempt_date.isoformat()},
        )
        return RetryOutcome(case=advanced)

    async def _close(
        self, case: DunningCase, status: DunningStatus, reason: str, at: datetime
    ) -> DunningCase:
        return await self.repository.update(
            case.id,
            DunningCaseUpdateModel(
                status=status,
                last_attempt_at=at,
                next_attempt_date=None,
                resolved_at=at,
                resolution_reason=reason,
            ),
        )
