"""
Event ingestion gateway for payment gateway webhooks.

    verify signature -> parse envelope -> resolve type -> dedupe
        -> translate to fact -> find subscription
        -> lock + transaction(apply fact, mark processed)

The processed-event marker commits with the effects, so an event whose effects
failed is applied again when the gateway redelivers it.
"""

from typing import Optional, Union

import stripe
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from common.core.config import settings
from common.core.exceptions import MalformedEvent, VerificationFailed
from common.core.otel_axiom_exporter import trace_span, get_logger, log_span_event
from common.db.scoped import transaction
from packages.billing.models.domain.enums import PurchaseType, TransactionStatus
from packages.billing.models.domain.gateway_events import (
    GatewayEventEnvelope,
    GatewayEventType,
    IngestAck,
    IngestOutcome,
)
from packages.billing.models.domain.metadata import OneTimePurchaseMetadata
from packages.billing.models.domain.transactions import PaymentTransactionCreateModel
from packages.billing.repositories.processed_event_repository import (
    ProcessedEventRepository,
)
from packages.billing.repositories.transaction_repository import (
    PaymentTransactionRepository,
)
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.webhooks.translation import to_payment, to_subscription_fact
from packages.money.services.money_service import MoneyService

logger = get_logger(__name__)


class EventIngestionGateway:
    """Verifies, deduplicates and applies inbound gateway events."""

    def __init__(
        self,
        subscriptions: Optional[SubscriptionService] = None,
        processed_events: Optional[ProcessedEventRepository] = None,
        transactions: Optional[PaymentTransactionRepository] = None,
        money: Optional[MoneyService] = None,
        webhook_secret: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
    ):
        self.subscriptions = subscriptions or SubscriptionService()
        self.processed_events = processed_events or ProcessedEventRepository()
        self.transactions = transactions or PaymentTransactionRepository()
        self.money = money or MoneyService()
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self.tolerance_seconds = tolerance_seconds or settings.stripe_webhook_tolerance_seconds

    @trace_span
    async def ingest(self, raw_event: Union[bytes, str], signature: Optional[str]) -> IngestAck:
        """
        Process one webhook delivery.

        Raises:
            VerificationFailed: Signature missing or invalid; nothing was read or written
            MalformedEvent: Authentic event that cannot be parsed
            ConflictingWrite: The subscription lock could not be acquired; the
                gateway redelivers
        """
        payload = self._verify(raw_event, signature)
        envelope = self._parse_envelope(payload)

        event_type = GatewayEventType.resolve(envelope.type)
        if event_type is None:
            logger.info(
                f"Ignoring unhandled gateway event type: {envelope.type}",
                extra={"event_id": envelope.id, "event_type": envelope.type},
            )
            return self._ack(envelope, IngestOutcome.IGNORED)

        logger.info(
            f"Received gateway event: {envelope.type}",
            extra={"event_id": envelope.id, "event_type": envelope.type},
        )

        if await self.processed_events.is_processed(envelope.id):
            return self._duplicate(envelope)

        if event_type == GatewayEventType.PAYMENT_SUCCEEDED:
            return await self._record_one_time_payment(envelope)
        return await self._apply_subscription_event(event_type, envelope)

    def _verify(self, raw_event: Union[bytes, str], signature: Optional[str]) -> str:
        if not signature or not self.webhook_secret:
            self._security_event("Webhook rejected: missing signature")
            raise VerificationFailed("Missing signature")

        try:
            payload = (
                raw_event.decode("utf-8") if isinstance(raw_event, bytes) else raw_event
            )
        except UnicodeDecodeError as e:
            self._security_event("Webhook rejected: body is not valid UTF-8")
            raise VerificationFailed("Invalid payload encoding") from e

        try:
            stripe.WebhookSignature.verify_header(
                payload, signature, self.webhook_secret, self.tolerance_seconds
            )
        except stripe.SignatureVerificationError as e:
            self._security_event(f"Webhook signature verification failed: {e}")
            raise VerificationFailed("Invalid signature") from e
        return payload

    def _security_event(self, message: str) -> None:
        logger.warning(message)
        log_span_event(message, {"security_event": "webhook_verification_failed"})

    def _parse_envelope(self, payload: str) -> GatewayEventEnvelope:
        try:
            return GatewayEventEnvelope.model_validate_json(payload)
        except PydanticValidationError as e:
            logger.error(f"Malformed gateway event envelope: {e.error_count()} errors")
            raise MalformedEvent("Malformed event envelope") from e

    async def _apply_subscription_event(
        self, event_type: GatewayEventType, envelope: GatewayEventEnvelope
    ) -> IngestAck:
        translated = to_subscription_fact(event_type, envelope)
        subscription = await self.subscriptions.subscription_repo.find_by_gateway_refs(
            gateway_subscription_id=translated.gateway_subscription_id,
            gateway_customer_id=translated.gateway_customer_id,
        )
        if subscription is None:
            return await self._record_orphan(envelope, translated.reference)

        try:
            async with self.subscriptions.locked(subscription.id):
                async with transaction():
                    # Another delivery may have finished while we waited for the lock
                    if await self.processed_events.is_processed(envelope.id):
                        return self._duplicate(envelope)
                    applied = await self.subscriptions.apply_in_transaction(
                        subscription.id, translated.fact
                    )
                    await self.processed_events.mark_processed(
                        envelope.id, envelope.type, IngestOutcome.APPLIED.value
                    )
        except IntegrityError as e:
            return await self._duplicate_or_raise(envelope, e)
        except Exception as e:
            logger.error(
                f"Failed to apply gateway event {envelope.id}: {e}",
                extra={
                    "event_id": envelope.id,
                    "event_type": envelope.type,
                    "subscription_id": subscription.id,
                },
            )
            raise

        await self.subscriptions.after_commit(applied)
        return self._ack(envelope, IngestOutcome.APPLIED, applied.subscription.id)

    async def _record_one_time_payment(self, envelope: GatewayEventEnvelope) -> IngestAck:
        payment = to_payment(envelope)
        user_id = str(payment.metadata.get("user_id", ""))
        if not user_id.isdigit():
            return await self._record_orphan(envelope, payment.id)

        currency = self.money.require_currency(payment.currency)
        purchase_type = payment.metadata.get("purchase_type")
        metadata = OneTimePurchaseMetadata(
            payment_intent_id=payment.id,
            purchase_id=payment.metadata.get("purchase_id"),
            purchase_type=(
                purchase_type
                if purchase_type in {t.value for t in PurchaseType}
                else None
            ),
            description=payment.description,
            event_id=envelope.id,
        )

        try:
            async with transaction():
                if await self.transactions.has_reference(payment.id, TransactionStatus.SUCCEEDED):
                    await self.processed_events.mark_processed(
                        envelope.id, envelope.type, IngestOutcome.DUPLICATE.value
                    )
                    return self._duplicate(envelope)
                await self.transactions.append(
                    PaymentTransactionCreateModel(
                        user_id=int(user_id),
                        purchase_id=metadata.purchase_id,
                        amount=payment.amount,
                        currency=currency.code,
                        status=TransactionStatus.SUCCEEDED,
                        gateway_reference=payment.id,
                        transaction_metadata=metadata.model_dump(mode="json"),
                    )
                )
                await self.processed_events.mark_processed(
                    envelope.id, envelope.type, IngestOutcome.APPLIED.value
                )
        except IntegrityError as e:
            return await self._duplicate_or_raise(envelope, e)

        logger.info(
            f"Recorded one-time payment {payment.id}",
            extra={
                "user_id": int(user_id),
                "purchase_id": metadata.purchase_id,
                "amount": payment.amount,
                "currency": currency.code,
            },
        )
        return self._ack(envelope, IngestOutcome.APPLIED)

    async def _record_orphan(
        self, envelope: GatewayEventEnvelope, reference: str
    ) -> IngestAck:
        logger.warning(
            f"Orphan gateway event {envelope.id}: no local record for {reference}",
            extra={
                "event_id": envelope.id,
                "event_type": envelope.type,
                "reference": reference,
            },
        )
        try:
            async with transaction():
                await self.processed_events.mark_processed(
                    envelope.id, envelope.type, IngestOutcome.ORPHAN.value
                )
        except IntegrityError as e:
            return await self._duplicate_or_raise(envelope, e)
        return self._ack(envelope, IngestOutcome.ORPHAN)

    async def _duplicate_or_raise(
        self, envelope: GatewayEventEnvelope, error: IntegrityError
    ) -> IngestAck:
        """After an IntegrityError: a concurrent delivery won, or something else broke."""
        if await self.processed_events.is_processed(envelope.id):
            return self._duplicate(envelope)
        raise error

    def _duplicate(self, envelope: GatewayEventEnvelope) -> IngestAck:
        logger.info(
            f"Duplicate gateway event {envelope.id}",
            extra={"event_id": envelope.id, "event_type": envelope.type},
        )
        return self._ack(envelope, IngestOutcome.DUPLICATE)

    def _ack(
        self,
        envelope: GatewayEventEnvelope,
        outcome: IngestOutcome,
        subscription_id: Optional[int] = None,
    ) -> IngestAck:
        return IngestAck(
            event_id=envelope.id,
            event_type=envelope.type,
            outcome=outcome,
            subscription_id=subscription_id,
        )
