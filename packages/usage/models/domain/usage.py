"""
Domain models for metered usage.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UsageType(str, Enum):
    API_CALLS = "api_calls"
    STORAGE = "storage"  # GB
    BANDWIDTH = "bandwidth"  # GB
    TRANSACTIONS = "transactions"

    def default_rate(self) -> Decimal:
        """Price per unit beyond the plan's included units."""
        return _DEFAULT_RATES[self]


_DEFAULT_RATES = {
    UsageType.API_CALLS: Decimal("0.001"),
    UsageType.STORAGE: Decimal("0.10"),
    UsageType.BANDWIDTH: Decimal("0.05"),
    UsageType.TRANSACTIONS: Decimal("0.01"),
}


class UsageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_id: int
    usage_type: UsageType
    period_start: datetime
    period_end: datetime
    amount: Decimal
    rate_per_unit: Decimal
    overage_cost: Decimal = Decimal(0)
    created_at: datetime
    updated_at: Optional[datetime] = None


class UsageSummaryItem(BaseModel):
    """One usage type of a subscription's current period, with its plan limit."""

    usage_type: UsageType
    amount: Decimal
    included: Optional[Decimal]  # None = unlimited
    overage_units: Decimal
    rate_per_unit: Decimal
    overage_cost: Decimal
    period_start: datetime
    period_end: datetime
