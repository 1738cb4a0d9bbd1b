"""
API schemas for revenue analytics.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RevenueSnapshotResponse(BaseModel):
    """Revenue metrics in the reporting currency (minor units)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    as_of: datetime
    currency: str
    churn_window_days: Optional[int] = None

    monthly_recurring_revenue: int
    subscription_revenue: int
    collected_subscription_revenue: int
    one_time_purchase_revenue: int
    average_revenue_per_user: int

    total_users: int
    total_subscriptions: int
    active_subscriptions: int
    canceled_subscriptions: int
    churn_rate: float = Field(..., description="Percentage, two decimals")

    succeeded_transactions: int
    total_transactions: int
    payment_success_rate: float = Field(..., description="Percentage, two decimals")
