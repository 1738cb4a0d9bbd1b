"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    SubscriptionStatus,
    BillingCycle,
    PaymentProvider,
    TransactionStatus,
    InvoiceStatus,
    PurchaseType,
    CancellationReason,
    NotificationKind,
)
from packages.billing.models.domain.plans import Plan, PlanLimits, PlanCreateModel
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionState,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)

__all__ = [
    # Enums
    "SubscriptionStatus",
    "BillingCycle",
    "PaymentProvider",
    "TransactionStatus",
    "InvoiceStatus",
    "PurchaseType",
    "CancellationReason",
    "NotificationKind",
    # Plans
    "Plan",
    "PlanLimits",
    "PlanCreateModel",
    # Subscription
    "Subscription",
    "SubscriptionState",
    "SubscriptionCreateModel",
    "SubscriptionUpdateModel",
]
