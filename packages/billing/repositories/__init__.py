"""Billing repositories."""

from packages.billing.repositories.plan_repository import PlanRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.transaction_repository import (
    PaymentTransactionRepository,
)
from packages.billing.repositories.billing_history_repository import (
    BillingHistoryRepository,
)
from packages.billing.repositories.processed_event_repository import (
    ProcessedEventRepository,
)

__all__ = [
    "PlanRepository",
    "SubscriptionRepository",
    "PaymentTransactionRepository",
    "BillingHistoryRepository",
    "ProcessedEventRepository",
]
