"""Reference data providers - currency and tax tables."""

from packages.money.providers.reference_data.interface import (
    ReferenceDataProviderInterface,
)
from packages.money.providers.reference_data.factory import get_reference_data_provider

__all__ = [
    "ReferenceDataProviderInterface",
    "get_reference_data_provider",
]
