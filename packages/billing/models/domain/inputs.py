"""
State machine inputs.

Intents are user-initiated; facts are reported by the payment gateway.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from packages.billing.models.domain.enums import BillingCycle, CancellationReason


class _Input(BaseModel):
    model_config = ConfigDict(frozen=True)

    at: datetime


# ============================================================================
# Intents
# ============================================================================


class CreateSubscription(_Input):
    kind: Literal["create_subscription"] = "create_subscription"
    plan_id: str
    billing_cycle: BillingCycle


class ChangePlan(_Input):
    """Move to another plan. Prices are the per-cycle prices of both plans."""

    kind: Literal["change_plan"] = "change_plan"
    plan_id: str
    billing_cycle: BillingCycle
    current_price: int
    new_price: int
    currency: str
    prorate: bool = True


class CancelSubscription(_Input):
    kind: Literal["cancel_subscription"] = "cancel_subscription"
    reason: CancellationReason = CancellationReason.USER_REQUESTED


# ============================================================================
# Facts
# ============================================================================


class GatewaySubscriptionFact(_Input):
    gateway_subscription_id: str
    gateway_status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None


class SubscriptionCreated(GatewaySubscriptionFact):
    kind: Literal["subscription_created"] = "subscription_created"


class SubscriptionUpdated(GatewaySubscriptionFact):
    kind: Literal["subscription_updated"] = "subscription_updated"


class SubscriptionDeleted(_Input):
    kind: Literal["subscription_deleted"] = "subscription_deleted"
    gateway_subscription_id: Optional[str] = None


class InvoicePaid(_Input):
    kind: Literal["invoice_paid"] = "invoice_paid"
    event_id: str
    invoice_id: str
    amount_paid: int
    currency: str
    billing_reason: Optional[str] = None
    invoice_pdf: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


class InvoicePaymentFailed(_Input):
    kind: Literal["invoice_payment_failed"] = "invoice_payment_failed"
    event_id: str
    invoice_id: str
    amount_due: int
    currency: str
    failure_reason: str = "payment_failed"


class DunningRecovered(_Input):
    """A scheduled retry collected the outstanding payment."""

    kind: Literal["dunning_recovered"] = "dunning_recovered"


Intent = Union[CreateSubscription, ChangePlan, CancelSubscription]

SubscriptionInput = Annotated[
    Union[
        ChangePlan,
        CancelSubscription,
        SubscriptionCreated,
        SubscriptionUpdated,
        SubscriptionDeleted,
        InvoicePaid,
        InvoicePaymentFailed,
        DunningRecovered,
    ],
    Field(discriminator="kind"),
]
