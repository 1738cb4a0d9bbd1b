"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from packages.billing.models.domain.enums import (
    SubscriptionStatus,
    BillingCycle,
    PaymentProvider,
)


class SubscriptionState(BaseModel):
    """
    The part of a subscription owned by the state machine.

    Transitions read one of these and return the next one; the executor
    persists the difference.
    """

    model_config = ConfigDict(frozen=True)

    status: SubscriptionStatus
    plan_id: str
    billing_cycle: BillingCycle
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    gateway_subscription_id: Optional[str] = None


class Subscription(BaseModel):
    """
    A user's subscription to one plan.

    The gateway customer/subscription pair is the join key for inbound events.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    plan_id: str
    billing_cycle: BillingCycle
    status: SubscriptionStatus

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    payment_provider: PaymentProvider = PaymentProvider.STRIPE
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    def state(self) -> SubscriptionState:
        return SubscriptionState(
            status=self.status,
            plan_id=self.plan_id,
            billing_cycle=self.billing_cycle,
            current_period_start=self.current_period_start,
            current_period_end=self.current_period_end,
            trial_start=self.trial_start,
            trial_end=self.trial_end,
            canceled_at=self.canceled_at,
            gateway_subscription_id=self.gateway_subscription_id,
        )

    def has_access(self) -> bool:
        return self.status.has_access()


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    user_id: int
    plan_id: str
    billing_cycle: str
    status: str = SubscriptionStatus.PENDING.value
    payment_provider: str = PaymentProvider.STRIPE.value
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    @field_validator("billing_cycle", "status", "payment_provider", mode="before")
    @classmethod
    def enum_to_value(cls, v):
        if isinstance(v, (BillingCycle, SubscriptionStatus, PaymentProvider)):
            return v.value
        return v


class SubscriptionUpdateModel(BaseModel):
    """Model for updating a subscription."""

    plan_id: Optional[str] = None
    billing_cycle: Optional[str] = None
    status: Optional[str] = None

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    @field_validator("billing_cycle", mode="before")
    @classmethod
    def validate_billing_cycle(cls, v):
        if isinstance(v, BillingCycle):
            return v.value
        return v

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, SubscriptionStatus):
            return v.value
        return v
