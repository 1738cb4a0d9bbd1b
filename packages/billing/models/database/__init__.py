"""Database models for billing."""

from packages.billing.models.database.plan import PlanEntity
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.database.payment_transaction import (
    PaymentTransactionEntity,
)
from packages.billing.models.database.billing_history import BillingHistoryEntity
from packages.billing.models.database.processed_event import ProcessedEventEntity

__all__ = [
    "PlanEntity",
    "SubscriptionEntity",
    "PaymentTransactionEntity",
    "BillingHistoryEntity",
    "ProcessedEventEntity",
]
