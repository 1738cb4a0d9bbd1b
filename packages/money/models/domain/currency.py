"""
Domain models for currencies and normalized amounts.
"""

from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Currency(BaseModel):
    """Reference data for one currency. Rates are relative to the base currency (USD)."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    symbol: str
    exchange_rate: Decimal = Field(gt=0)
    minor_unit_exponent: int = 2
    is_supported: bool = True
    gateway_supported: bool = True

    @field_validator("code", mode="before")
    @classmethod
    def upper_code(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def minor_unit_factor(self) -> Decimal:
        return Decimal(10) ** self.minor_unit_exponent


class NormalizedAmount(BaseModel):
    """An amount in integer minor units of a canonical currency code."""

    model_config = ConfigDict(frozen=True)

    minor_units: int
    currency: str
