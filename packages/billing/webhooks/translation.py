"""
Translation of verified gateway events into state machine facts.
"""

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from common.core.exceptions import MalformedEvent
from packages.billing.models.domain.gateway_events import (
    GatewayEventEnvelope,
    GatewayEventType,
    GatewayInvoicePayload,
    GatewayPaymentPayload,
    GatewaySubscriptionPayload,
)
from packages.billing.models.domain.inputs import (
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
)

SubscriptionFact = Union[
    SubscriptionCreated,
    SubscriptionUpdated,
    SubscriptionDeleted,
    InvoicePaid,
    InvoicePaymentFailed,
]


@dataclass(frozen=True)
class TranslatedFact:
    """A fact plus the gateway references used to find its subscription."""

    fact: SubscriptionFact
    gateway_subscription_id: Optional[str]
    gateway_customer_id: Optional[str]

    @property
    def reference(self) -> str:
        return self.gateway_subscription_id or self.gateway_customer_id or "unknown"


def _parse(model, envelope: GatewayEventEnvelope):
    try:
        return model.model_validate(envelope.payload)
    except PydanticValidationError as e:
        raise MalformedEvent(
            f"Invalid {envelope.type} payload in event {envelope.id}: {e.error_count()} errors"
        ) from e


def to_subscription_fact(
    event_type: GatewayEventType, envelope: GatewayEventEnvelope
) -> TranslatedFact:
    """
    Build the fact for a subscription or invoice event.

    Raises:
        MalformedEvent: If the payload does not match the event type
    """
    at = envelope.created_at

    if event_type in (
        GatewayEventType.SUBSCRIPTION_CREATED,
        GatewayEventType.SUBSCRIPTION_UPDATED,
    ):
        payload = _parse(GatewaySubscriptionPayload, envelope)
        fact_class = (
            SubscriptionCreated
            if event_type == GatewayEventType.SUBSCRIPTION_CREATED
            else SubscriptionUpdated
        )
        fact = fact_class(
            at=at,
            gateway_subscription_id=payload.id,
            gateway_status=payload.status,
            current_period_start=payload.current_period_start,
            current_period_end=payload.current_period_end,
            trial_start=payload.trial_start,
            trial_end=payload.trial_end,
            canceled_at=payload.canceled_at,
        )
        return TranslatedFact(fact, payload.id, payload.customer)

    if event_type == GatewayEventType.SUBSCRIPTION_DELETED:
        payload = _parse(GatewaySubscriptionPayload, envelope)
        fact = SubscriptionDeleted(
            at=payload.canceled_at or at, gateway_subscription_id=payload.id
        )
        return TranslatedFact(fact, payload.id, payload.customer)

    if event_type == GatewayEventType.INVOICE_PAYMENT_SUCCEEDED:
        payload = _parse(GatewayInvoicePayload, envelope)
        fact = InvoicePaid(
            at=at,
            event_id=envelope.id,
            invoice_id=payload.id,
            amount_paid=payload.amount_paid,
            currency=payload.currency,
            billing_reason=payload.billing_reason,
            invoice_pdf=payload.invoice_pdf,
            period_start=payload.period_start,
            period_end=payload.period_end,
        )
        return TranslatedFact(fact, payload.subscription, payload.customer)

    if event_type == GatewayEventType.INVOICE_PAYMENT_FAILED:
        payload = _parse(GatewayInvoicePayload, envelope)
        fact = InvoicePaymentFailed(
            at=at,
            event_id=envelope.id,
            invoice_id=payload.id,
            amount_due=payload.amount_due,
            currency=payload.currency,
            failure_reason=payload.failure_reason,
        )
        return TranslatedFact(fact, payload.subscription, payload.customer)

    raise ValueError(f"{event_type.value} is not a subscription event")


def to_payment(envelope: GatewayEventEnvelope) -> GatewayPaymentPayload:
    """
    Raises:
        MalformedEvent: If the payload is not a payment
    """
    return _parse(GatewayPaymentPayload, envelope)
