"""
Billing enums - strongly typed enumerations for subscription and billing states.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Flow: pending -> active | trialing -> past_due -> active | unpaid | canceled
    """

    PENDING = "pending"  # Checkout created, not yet confirmed by the gateway
    ACTIVE = "active"  # Paid and current
    TRIALING = "trialing"  # Inside a trial window
    PAST_DUE = "past_due"  # Payment failed, dunning in progress
    UNPAID = "unpaid"  # Gateway gave up collecting
    CANCELED = "canceled"  # Terminal

    def is_terminal(self) -> bool:
        return self == SubscriptionStatus.CANCELED

    def has_access(self) -> bool:
        """Check if this status allows product access."""
        return self in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.PAST_DUE,
        )


NON_TERMINAL_STATUSES = (
    SubscriptionStatus.PENDING,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PAST_DUE,
)


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PaymentProvider(str, Enum):
    """Supported payment providers."""

    STRIPE = "stripe"


class TransactionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"
    CANCELED = "canceled"


class InvoiceStatus(str, Enum):
    """Invoice status as recorded in billing history."""

    PAID = "paid"


class PurchaseType(str, Enum):
    """One-time purchase catalog types."""

    REWARD_PACK = "reward_pack"
    BADGE = "badge"
    BOOST = "boost"
    FEATURE_UNLOCK = "feature_unlock"


class CancellationReason(str, Enum):
    USER_REQUESTED = "user_requested"
    DUNNING_EXHAUSTED = "dunning_exhausted"


class NotificationKind(str, Enum):
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_RECOVERED = "payment_recovered"
    DUNNING_ATTEMPT = "dunning_attempt"
    DUNNING_EXHAUSTED = "dunning_exhausted"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    MANUAL_REVIEW = "manual_review"
