"""
In-process reference tables.

Used until an external rate oracle is wired in, and by tests that need fixed data.
"""

from decimal import Decimal
from typing import Iterable, Optional

from packages.money.models.domain.currency import Currency
from packages.money.models.domain.tax import TaxRate, TaxType
from packages.money.providers.reference_data.interface import (
    ReferenceDataProviderInterface,
)

DEFAULT_CURRENCIES = [
    Currency(code="USD", name="US Dollar", symbol="$", exchange_rate=Decimal("1.0")),
    Currency(code="EUR", name="Euro", symbol="€", exchange_rate=Decimal("0.85")),
    Currency(code="GBP", name="British Pound", symbol="£", exchange_rate=Decimal("0.73")),
    Currency(code="CAD", name="Canadian Dollar", symbol="C$", exchange_rate=Decimal("1.25")),
    Currency(code="AUD", name="Australian Dollar", symbol="A$", exchange_rate=Decimal("1.35")),
    Currency(
        code="JPY",
        name="Japanese Yen",
        symbol="¥",
        exchange_rate=Decimal("110.0"),
        minor_unit_exponent=0,
    ),
    Currency(code="CHF", name="Swiss Franc", symbol="CHF", exchange_rate=Decimal("0.92")),
    Currency(code="SEK", name="Swedish Krona", symbol="kr", exchange_rate=Decimal("8.5")),
    Currency(code="NOK", name="Norwegian Krone", symbol="kr", exchange_rate=Decimal("8.8")),
    Currency(code="DKK", name="Danish Krone", symbol="kr", exchange_rate=Decimal("6.3")),
]

DEFAULT_TAX_RATES = [
    TaxRate(jurisdiction_key="US-CA", rate=Decimal("0.0875"), tax_type=TaxType.SALES_TAX),
    TaxRate(jurisdiction_key="US-NY", rate=Decimal("0.08"), tax_type=TaxType.SALES_TAX),
    TaxRate(jurisdiction_key="US-TX", rate=Decimal("0.0625"), tax_type=TaxType.SALES_TAX),
    TaxRate(jurisdiction_key="US-FL", rate=Decimal("0.06"), tax_type=TaxType.SALES_TAX),
    TaxRate(jurisdiction_key="GB", rate=Decimal("0.20"), tax_type=TaxType.VAT),
    TaxRate(jurisdiction_key="DE", rate=Decimal("0.19"), tax_type=TaxType.VAT),
    TaxRate(jurisdiction_key="FR", rate=Decimal("0.20"), tax_type=TaxType.VAT),
    TaxRate(jurisdiction_key="CA", rate=Decimal("0.13"), tax_type=TaxType.GST),
    TaxRate(jurisdiction_key="AU", rate=Decimal("0.10"), tax_type=TaxType.GST),
    TaxRate(jurisdiction_key="JP", rate=Decimal("0.10"), tax_type=TaxType.SALES_TAX),
]


class StaticReferenceDataProvider(ReferenceDataProviderInterface):
    """Reference data held in memory."""

    def __init__(
        self,
        currencies: Optional[Iterable[Currency]] = None,
        tax_rates: Optional[Iterable[TaxRate]] = None,
    ):
        self._currencies = {
            c.code: c for c in (currencies if currencies is not None else DEFAULT_CURRENCIES)
        }
        self._tax_rates = {
            t.jurisdiction_key.upper(): t
            for t in (tax_rates if tax_rates is not None else DEFAULT_TAX_RATES)
        }

    def get_currency(self, code: str) -> Optional[Currency]:
        return self._currencies.get(code.upper())

    def list_currencies(self) -> list[Currency]:
        return list(self._currencies.values())

    def get_tax_rate(self, jurisdiction_key: str) -> Optional[TaxRate]:
        return self._tax_rates.get(jurisdiction_key.upper())
