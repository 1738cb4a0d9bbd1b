"""
Factory for the reference data provider.
"""

from typing import Optional

from packages.money.providers.reference_data.interface import (
    ReferenceDataProviderInterface,
)
from packages.money.providers.reference_data.static_tables import (
    StaticReferenceDataProvider,
)

_reference_data: Optional[ReferenceDataProviderInterface] = None


def get_reference_data_provider() -> ReferenceDataProviderInterface:
    """
    Get the reference data provider.

    Only the static tables exist today; a rate-oracle backed provider would be
    selected here.
    """
    global _reference_data

    if _reference_data is None:
        _reference_data = StaticReferenceDataProvider()
    return _reference_data
