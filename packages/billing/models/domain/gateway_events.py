"""
Inbound payment gateway events.

The envelope accepts both the internal shape ``{id, type, createdAt, payload}``
and Stripe's native ``{id, type, created, data: {object}}``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GatewayEventType(str, Enum):
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_DELETED = "subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    PAYMENT_SUCCEEDED = "payment.succeeded"

    @classmethod
    def resolve(cls, raw_type: str) -> Optional["GatewayEventType"]:
        """Internal type for a raw gateway type, or None if the engine does not handle it."""
        raw_type = _STRIPE_ALIASES.get(raw_type, raw_type)
        try:
            return cls(raw_type)
        except ValueError:
            return None


_STRIPE_ALIASES = {
    "customer.subscription.created": "subscription.created",
    "customer.subscription.updated": "subscription.updated",
    "customer.subscription.deleted": "subscription.deleted",
    "invoice.paid": "invoice.payment_succeeded",
    "payment_intent.succeeded": "payment.succeeded",
}


class GatewayEventEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    type: str
    created_at: datetime
    payload: dict[str, Any]

    @model_validator(mode="before")
    @classmethod
    def unwrap_stripe_shape(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "created_at" not in data:
            data["created_at"] = data.get("createdAt", data.get("created"))
        if "payload" not in data and isinstance(data.get("data"), dict):
            data["payload"] = data["data"].get("object")
        return data


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("currency", mode="before", check_fields=False)
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if isinstance(v, str) else v


class GatewaySubscriptionPayload(_Payload):
    id: str
    customer: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class GatewayInvoicePayload(_Payload):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    amount_paid: int = 0
    amount_due: int = 0
    currency: str
    billing_reason: Optional[str] = None
    invoice_pdf: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    failure_reason: str = "payment_failed"

    @model_validator(mode="before")
    @classmethod
    def extract_failure_reason(cls, data):
        if isinstance(data, dict) and not data.get("failure_reason"):
            error = data.get("last_payment_error") or data.get("last_finalization_error")
            if isinstance(error, dict) and (error.get("decline_code") or error.get("code")):
                data = dict(data)
                data["failure_reason"] = error.get("decline_code") or error.get("code")
        return data


class GatewayPaymentPayload(_Payload):
    """One-time payment (Stripe payment intent)."""

    id: str
    amount: int
    currency: str
    customer: Optional[str] = None
    description: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class IngestOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    ORPHAN = "orphan"


class IngestAck(BaseModel):
    """Acknowledgement returned to the webhook transport."""

    event_id: str
    event_type: str
    outcome: IngestOutcome
    subscription_id: Optional[int] = None


class ProcessedEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    event_type: str
    outcome: IngestOutcome
    processed_at: datetime
