"""
API schemas for billing operations.

Request and response models for billing endpoints. Amounts are integer minor
units of the accompanying currency.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoiceStatus,
    PurchaseType,
    SubscriptionStatus,
    TransactionStatus,
)
from packages.billing.models.domain.metadata import TransactionMetadata
from packages.billing.models.domain.plans import Plan, PlanLimits


# ============================================================================
# Plan Schemas
# ============================================================================


class PlanResponse(BaseModel):
    """A plan as shown on pricing pages."""

    id: str
    name: str
    description: Optional[str] = None
    price_monthly: int
    price_yearly: int
    currency: str
    yearly_savings_percentage: int
    features: list[str]
    limits: PlanLimits
    usage_limits: dict[str, Decimal]

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            price_monthly=plan.price_monthly,
            price_yearly=plan.price_yearly,
            currency=plan.currency,
            yearly_savings_percentage=plan.yearly_savings_percentage(),
            features=plan.features,
            limits=plan.limits,
            usage_limits=plan.usage_limits,
        )


class PlansResponse(BaseModel):
    plans: list[PlanResponse]


# ============================================================================
# Checkout Schemas
# ============================================================================


class CheckoutSessionRequest(BaseModel):
    """Request to create a checkout session."""

    plan_id: str
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    success_url: HttpUrl
    cancel_url: HttpUrl
    customer_email: Optional[str] = None
    trial_period_days: Optional[int] = Field(
        default=None,
        ge=1,
        le=90,
        description="Number of trial days (1-90). If not provided, no trial period.",
    )


class CheckoutSessionResponse(BaseModel):
    """Response with checkout URL."""

    checkout_url: str = Field(..., description="Stripe checkout session URL")
    subscription_id: int


# ============================================================================
# Portal Schemas
# ============================================================================


class PortalSessionRequest(BaseModel):
    """Request to create a customer portal session."""

    return_url: HttpUrl


class PortalSessionResponse(BaseModel):
    """Response with portal URL."""

    portal_url: str = Field(..., description="Stripe customer portal URL")


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionStatusResponse(BaseModel):
    """Current subscription status."""

    subscription_id: int
    user_id: int
    plan: PlanResponse
    billing_cycle: BillingCycle
    status: SubscriptionStatus
    has_access: bool = Field(..., description="Whether the user has product access")
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None


class ChangePlanRequest(BaseModel):
    """Request to move to another plan."""

    plan_id: str
    billing_cycle: Optional[BillingCycle] = None
    prorate: bool = True


class CancelSubscriptionResponse(BaseModel):
    """Response after subscription cancellation."""

    success: bool
    message: str
    status: SubscriptionStatus
    canceled_at: Optional[datetime] = None


# ============================================================================
# One-time Purchase Schemas
# ============================================================================


class PurchaseIntentRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Amount in minor units")
    currency: str = Field(..., min_length=3, max_length=3)
    purchase_type: PurchaseType
    description: Optional[str] = None


class PurchaseIntentResponse(BaseModel):
    purchase_id: str
    payment_intent_id: str
    client_secret: str
    amount: int
    currency: str


# ============================================================================
# Ledger Schemas
# ============================================================================


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_id: Optional[int] = None
    purchase_id: Optional[str] = None
    amount: int
    currency: str
    status: TransactionStatus
    gateway_reference: Optional[str] = None
    transaction_metadata: TransactionMetadata
    created_at: datetime


class BillingHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_id: int
    gateway_invoice_id: str
    amount_paid: int
    currency: str
    status: InvoiceStatus
    reason: Optional[str] = None
    invoice_pdf: Optional[str] = None
    created_at: datetime

