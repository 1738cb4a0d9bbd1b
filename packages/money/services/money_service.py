"""
Money & currency normalization.

Every monetary value is carried as integer minor units. Conversion between
currencies goes through the reference rates and is rounded half-up once, at the end.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from common.core.exceptions import UnsupportedCurrency
from common.core.otel_axiom_exporter import get_logger
from packages.money.models.domain.currency import Currency, NormalizedAmount
from packages.money.providers.reference_data import (
    ReferenceDataProviderInterface,
    get_reference_data_provider,
)

logger = get_logger(__name__)

_WHOLE = Decimal("1")


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(_WHOLE, rounding=ROUND_HALF_UP))


class MoneyService:
    """Normalizes, converts and formats amounts against injected currency data."""

    def __init__(self, reference_data: Optional[ReferenceDataProviderInterface] = None):
        self.reference_data = reference_data or get_reference_data_provider()

    def require_currency(self, code: str) -> Currency:
        """
        Resolve a supported currency.

        Raises:
            UnsupportedCurrency: If the code is unknown or flagged unsupported
        """
        currency = self.reference_data.get_currency(code.strip()) if code else None
        if currency is None or not currency.is_supported:
            raise UnsupportedCurrency(code)
        return currency

    def normalize(self, amount: Union[Decimal, int, str], currency: str) -> NormalizedAmount:
        """Convert a major-unit amount (e.g. 9.99) into integer minor units (999)."""
        resolved = self.require_currency(currency)
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        return NormalizedAmount(
            minor_units=round_half_up(value * resolved.minor_unit_factor),
            currency=resolved.code,
        )

    def convert(self, minor_units: int, from_currency: str, to_currency: str) -> int:
        """
        Convert minor units between currencies.

        Same-currency conversion returns the input unchanged.
        """
        source = self.require_currency(from_currency)
        target = self.require_currency(to_currency)
        if source.code == target.code:
            return minor_units

        major = Decimal(minor_units) / source.minor_unit_factor
        converted = major * target.exchange_rate / source.exchange_rate
        return round_half_up(converted * target.minor_unit_factor)

    def to_display(self, minor_units: int, currency: str) -> Decimal:
        """Minor units to a major-unit Decimal with the currency's precision."""
        resolved = self.require_currency(currency)
        exponent = Decimal(1).scaleb(-resolved.minor_unit_exponent)
        return (Decimal(minor_units) / resolved.minor_unit_factor).quantize(exponent)

    def format(self, minor_units: int, currency: str) -> str:
        resolved = self.require_currency(currency)
        return f"{resolved.symbol}{self.to_display(minor_units, resolved.code):,}"

    def list_currencies(self, gateway_only: bool = False) -> list[Currency]:
        return [
            c
            for c in self.reference_data.list_currencies()
            if c.is_supported and (c.gateway_supported or not gateway_only)
        ]
