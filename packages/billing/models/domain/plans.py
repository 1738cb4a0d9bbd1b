"""
Domain models for the plan catalog.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from packages.billing.models.domain.enums import BillingCycle

UNLIMITED = -1


class PlanLimits(BaseModel):
    """Numeric plan limits. -1 means unlimited."""

    distance_limit: int = UNLIMITED
    rewards_multiplier: Decimal = Decimal("1.0")
    premium_features: bool = False


class Plan(BaseModel):
    """A purchasable plan. Prices are integer minor units of `currency`."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    price_monthly: int
    price_yearly: int
    currency: str = "USD"
    features: list[str] = Field(default_factory=list)
    limits: PlanLimits = Field(default_factory=PlanLimits)
    usage_limits: dict[str, Decimal] = Field(default_factory=dict)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def price_for(self, billing_cycle: BillingCycle) -> int:
        if billing_cycle == BillingCycle.YEARLY:
            return self.price_yearly
        return self.price_monthly

    def monthly_price_for(self, billing_cycle: BillingCycle) -> Decimal:
        """Price normalized to one month; yearly prices are divided by 12."""
        if billing_cycle == BillingCycle.YEARLY:
            return Decimal(self.price_yearly) / 12
        return Decimal(self.price_monthly)

    def usage_limit(self, usage_type: str) -> Optional[Decimal]:
        """
        Included units for a usage type.

        Returns None when unlimited. A usage type missing from the plan has no
        included units.
        """
        limit = self.usage_limits.get(usage_type, Decimal(0))
        if limit == UNLIMITED:
            return None
        return Decimal(limit)

    def yearly_savings(self) -> int:
        return self.price_monthly * 12 - self.price_yearly

    def yearly_savings_percentage(self) -> int:
        if self.price_monthly == 0:
            return 0
        return round(self.yearly_savings() * 100 / (self.price_monthly * 12))


class PlanCreateModel(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price_monthly: int = Field(ge=0)
    price_yearly: int = Field(ge=0)
    currency: str = "USD"
    features: list[str] = Field(default_factory=list)
    limits: dict = Field(default_factory=dict)
    usage_limits: dict[str, float] = Field(default_factory=dict)
    is_active: bool = True
