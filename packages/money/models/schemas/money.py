"""
API schemas for currency and tax endpoints.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from packages.money.models.domain.tax import TaxType


class CurrencyResponse(BaseModel):
    code: str
    name: str
    symbol: str
    exchange_rate: Decimal = Field(..., description="Units of this currency per 1 USD")
    minor_unit_exponent: int
    gateway_supported: bool


class CurrenciesResponse(BaseModel):
    currencies: list[CurrencyResponse]


class TaxQuoteRequest(BaseModel):
    """Request a tax quote for a subtotal in minor units."""

    subtotal: int = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    country: str
    region: Optional[str] = None


class TaxQuoteResponse(BaseModel):
    subtotal: int
    tax_amount: int
    tax_rate: Decimal
    tax_type: TaxType
    total: int
    currency: str
    formatted_total: str
