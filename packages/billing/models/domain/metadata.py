"""
Provenance metadata attached to payment transactions.

A tagged union keyed by ``kind``. Stored blobs with a kind this version does not
know are preserved as the ``extension`` variant instead of being rejected.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

from packages.billing.models.domain.enums import PurchaseType


class SubscriptionInvoiceMetadata(BaseModel):
    kind: Literal["subscription_invoice"] = "subscription_invoice"
    invoice_id: str
    billing_reason: Optional[str] = None
    event_id: Optional[str] = None


class OneTimePurchaseMetadata(BaseModel):
    kind: Literal["one_time_purchase"] = "one_time_purchase"
    payment_intent_id: str
    purchase_id: Optional[str] = None
    purchase_type: Optional[PurchaseType] = None
    description: Optional[str] = None
    event_id: Optional[str] = None


class ProrationMetadata(BaseModel):
    kind: Literal["proration"] = "proration"
    from_plan_id: str
    to_plan_id: str
    period_end: Optional[datetime] = None
    remaining_fraction: str


class ExtensionMetadata(BaseModel):
    kind: Literal["extension"] = "extension"
    source: str
    data: dict[str, Any] = Field(default_factory=dict)


TransactionMetadata = Annotated[
    Union[
        SubscriptionInvoiceMetadata,
        OneTimePurchaseMetadata,
        ProrationMetadata,
        ExtensionMetadata,
    ],
    Field(discriminator="kind"),
]

KNOWN_KINDS = {
    "subscription_invoice",
    "one_time_purchase",
    "proration",
    "extension",
}

_adapter = TypeAdapter(TransactionMetadata)


def parse_metadata(raw: Any) -> TransactionMetadata:
    """Parse a stored metadata blob, routing unknown kinds to the extension variant."""
    if isinstance(raw, BaseModel):
        return raw
    if not isinstance(raw, dict) or raw.get("kind") not in KNOWN_KINDS:
        source = raw.get("kind", "unknown") if isinstance(raw, dict) else "unknown"
        data = raw if isinstance(raw, dict) else {"value": raw}
        return ExtensionMetadata(source=str(source), data=data)
    return _adapter.validate_python(raw)
