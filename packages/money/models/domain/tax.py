"""
Domain models for tax calculation.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator


class TaxType(str, Enum):
    VAT = "vat"
    GST = "gst"
    SALES_TAX = "sales_tax"
    NONE = "none"


class Jurisdiction(BaseModel):
    """Tax jurisdiction: ISO country code with an optional region (state/province)."""

    model_config = ConfigDict(frozen=True)

    country: str
    region: Optional[str] = None

    @field_validator("country", "region", mode="before")
    @classmethod
    def normalize_code(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v

    def lookup_keys(self) -> list[str]:
        """Most specific key first: "US-CA", then "US"."""
        if self.region:
            return [f"{self.country}-{self.region}", self.country]
        return [self.country]


class TaxRate(BaseModel):
    model_config = ConfigDict(frozen=True)

    jurisdiction_key: str
    rate: Decimal
    tax_type: TaxType


class TaxCalculation(BaseModel):
    """Result of applying a tax rate to a subtotal. All amounts in minor units."""

    subtotal: int
    tax_amount: int
    tax_rate: Decimal
    tax_type: TaxType
    total: int
