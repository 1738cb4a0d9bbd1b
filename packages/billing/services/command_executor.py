"""
Executes the commands returned by a state transition.

Runs inside the caller's transaction; nothing here commits.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from packages.billing.models.domain.commands import (
    Command,
    Notify,
    RecordBillingHistory,
    RecordTransaction,
    ResolveDunning,
    StartDunning,
)
from packages.billing.models.domain.enums import CancellationReason, TransactionStatus
from packages.billing.models.domain.inputs import CancelSubscription
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.transactions import (
    BillingHistoryCreateModel,
    PaymentTransactionCreateModel,
)
from packages.billing.repositories.billing_history_repository import (
    BillingHistoryRepository,
)
from packages.billing.repositories.transaction_repository import (
    PaymentTransactionRepository,
)
from packages.dunning.models.domain.dunning import DunningStatus
from packages.dunning.services.dunning_scheduler import DunningScheduler
from packages.money.services.money_service import MoneyService

logger = get_logger(__name__)


@dataclass
class ExecutionResult:
    """
    What is left to do once the commands ran.

    notifications: sent by the caller after commit
    follow_ups: intents to apply to the same subscription in the same transaction
    """

    notifications: list[Notify] = field(default_factory=list)
    follow_ups: list[CancelSubscription] = field(default_factory=list)


class CommandExecutor:
    def __init__(
        self,
        transactions: Optional[PaymentTransactionRepository] = None,
        billing_history: Optional[BillingHistoryRepository] = None,
        dunning: Optional[DunningScheduler] = None,
        money: Optional[MoneyService] = None,
    ):
        self.transactions = transactions or PaymentTransactionRepository()
        self.billing_history = billing_history or BillingHistoryRepository()
        self.dunning = dunning or DunningScheduler()
        self.money = money or MoneyService()

    @trace_span
    async def execute(
        self, subscription: Subscription, commands: Iterable[Command]
    ) -> ExecutionResult:
        result = ExecutionResult()

        for command in commands:
            if isinstance(command, RecordTransaction):
                await self._record_transaction(subscription, command)

            elif isinstance(command, RecordBillingHistory):
                await self._record_billing_history(subscription, command)

            elif isinstance(command, StartDunning):
                case = await self.dunning.on_payment_failed(
                    subscription.id,
                    subscription.user_id,
                    command.reason,
                    command.failed_at,
                    gateway_invoice_id=command.gateway_invoice_id,
                )
                if case.status == DunningStatus.EXHAUSTED:
                    result.follow_ups.append(
                        CancelSubscription(
                            at=command.failed_at,
                            reason=CancellationReason.DUNNING_EXHAUSTED,
                        )
                    )

            elif isinstance(command, ResolveDunning):
                await self.dunning.resolve(subscription.id, command.reason, utcnow())

            elif isinstance(command, Notify):
                result.notifications.append(command)

            else:
                logger.warning(f"Unhandled command: {type(command).__name__}")

        return result

    async def _record_transaction(
        self, subscription: Subscription, command: RecordTransaction
    ) -> None:
        # Stripe reports one paid invoice as both invoice.paid and
        # invoice.payment_succeeded, under different event ids
        if (
            command.status == TransactionStatus.SUCCEEDED
            and command.gateway_reference
            and await self.transactions.has_reference(
                command.gateway_reference, TransactionStatus.SUCCEEDED
            )
        ):
            logger.info(
                f"Payment {command.gateway_reference} already booked, skipping",
                extra={"subscription_id": subscription.id},
            )
            return

        currency = self.money.require_currency(command.currency)
        await self.transactions.append(
            PaymentTransactionCreateModel(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                amount=command.amount,
                currency=currency.code,
                status=command.status,
                gateway_reference=command.gateway_reference,
                transaction_metadata=command.metadata.model_dump(mode="json"),
            )
        )

    async def _record_billing_history(
        self, subscription: Subscription, command: RecordBillingHistory
    ) -> None:
        if await self.billing_history.has_invoice(command.gateway_invoice_id, command.status):
            return

        currency = self.money.require_currency(command.currency)
        await self.billing_history.append(
            BillingHistoryCreateModel(
                user_id=subscription.user_id,
                subscription_id=subscription.id,
                gateway_invoice_id=command.gateway_invoice_id,
                amount_paid=command.amount_paid,
                currency=currency.code,
                status=command.status,
                reason=command.reason,
                invoice_pdf=command.invoice_pdf,
            )
        )
