"""
Interface for read-only billing reference data.

Currency rates and tax rates are refreshed out of band; the engine only reads them.
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.money.models.domain.currency import Currency
from packages.money.models.domain.tax import TaxRate


class ReferenceDataProviderInterface(ABC):
    """Abstract source of currency and tax tables."""

    @abstractmethod
    def get_currency(self, code: str) -> Optional[Currency]:
        """
        Look up a currency by ISO code.

        Args:
            code: Upper-case ISO 4217 code

        Returns:
            The currency, or None if the table has no such code
        """
        pass

    @abstractmethod
    def list_currencies(self) -> list[Currency]:
        pass

    @abstractmethod
    def get_tax_rate(self, jurisdiction_key: str) -> Optional[TaxRate]:
        """
        Look up a tax rate.

        Args:
            jurisdiction_key: "COUNTRY" or "COUNTRY-REGION", e.g. "US-CA"

        Returns:
            The rate, or None when the jurisdiction is unmapped
        """
        pass
