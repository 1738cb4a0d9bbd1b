"""
Tax calculation over minor-unit subtotals.
"""

from decimal import Decimal
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from common.core.exceptions import UnsupportedJurisdiction, ValidationError
from common.core.otel_axiom_exporter import get_logger
from packages.money.models.domain.tax import Jurisdiction, TaxCalculation, TaxType
from packages.money.providers.reference_data import (
    ReferenceDataProviderInterface,
    get_reference_data_provider,
)
from packages.money.services.money_service import round_half_up

logger = get_logger(__name__)


def parse_jurisdiction(country: Optional[str], region: Optional[str] = None) -> Jurisdiction:
    """
    Build a Jurisdiction from raw codes.

    Raises:
        UnsupportedJurisdiction: If the country is not a two-letter code
    """
    try:
        jurisdiction = Jurisdiction(country=country, region=region)
    except PydanticValidationError:
        raise UnsupportedJurisdiction(f"Invalid jurisdiction: {country!r}/{region!r}")

    if len(jurisdiction.country) != 2 or not jurisdiction.country.isalpha():
        raise UnsupportedJurisdiction(f"Invalid country code: {country!r}")
    if jurisdiction.region is not None and not jurisdiction.region.isalnum():
        raise UnsupportedJurisdiction(f"Invalid region code: {region!r}")
    return jurisdiction


class TaxService:
    """Applies jurisdiction tax rates from the injected reference data."""

    def __init__(self, reference_data: Optional[ReferenceDataProviderInterface] = None):
        self.reference_data = reference_data or get_reference_data_provider()

    def compute_tax(self, subtotal: int, jurisdiction: Jurisdiction) -> TaxCalculation:
        """
        Compute tax on a subtotal.

        Unmapped jurisdictions yield a zero "none" tax; the total always equals
        subtotal plus tax amount.
        """
        if subtotal < 0:
            raise ValidationError("Subtotal cannot be negative")

        for key in jurisdiction.lookup_keys():
            tax_rate = self.reference_data.get_tax_rate(key)
            if tax_rate is not None:
                tax_amount = round_half_up(Decimal(subtotal) * tax_rate.rate)
                return TaxCalculation(
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    tax_rate=tax_rate.rate,
                    tax_type=tax_rate.tax_type,
                    total=subtotal + tax_amount,
                )

        logger.info(
            "No tax rate for jurisdiction",
            extra={"country": jurisdiction.country, "region": jurisdiction.region},
        )
        return TaxCalculation(
            subtotal=subtotal,
            tax_amount=0,
            tax_rate=Decimal("0"),
            tax_type=TaxType.NONE,
            total=subtotal,
        )
