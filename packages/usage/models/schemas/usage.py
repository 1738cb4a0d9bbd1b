"""
API schemas for metered usage.
"""

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packages.usage.models.domain.usage import UsageSummaryItem, UsageType


class RecordUsageRequest(BaseModel):
    usage_type: UsageType
    amount: Decimal = Field(..., gt=0)
    period_start: datetime
    period_end: datetime


class UsageRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subscription_id: int
    usage_type: UsageType
    period_start: datetime
    period_end: datetime
    amount: Decimal
    rate_per_unit: Decimal
    overage_cost: Decimal


class UsageSummaryResponse(BaseModel):
    """Usage of the current period, one item per usage type."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    subscription_id: int
    as_of: datetime
    items: list[UsageSummaryItem]
    total_overage_cost: Decimal = Field(
        ..., description="Sum of overage costs in the plan currency"
    )
