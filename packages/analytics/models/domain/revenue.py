"""
Domain models for revenue analytics.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class RevenueSnapshot(BaseModel):
    """
    Revenue metrics as of a point in time.

    Money fields are integer minor units of `currency`; rates are percentages.
    """

    as_of: datetime
    currency: str
    churn_window_days: Optional[int] = None

    monthly_recurring_revenue: int = 0
    subscription_revenue: int = 0
    collected_subscription_revenue: int = 0
    one_time_purchase_revenue: int = 0
    average_revenue_per_user: int = 0

    total_users: int = 0
    total_subscriptions: int = 0
    active_subscriptions: int = 0
    canceled_subscriptions: int = 0
    churn_rate: float = 0.0

    succeeded_transactions: int = 0
    total_transactions: int = 0
    payment_success_rate: float = 0.0
