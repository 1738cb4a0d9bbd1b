"""
Domain models for the payment ledger: transactions and billing history.

Both are append-only.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.billing.models.domain.enums import InvoiceStatus, TransactionStatus
from packages.billing.models.domain.metadata import TransactionMetadata, parse_metadata


class PaymentTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    subscription_id: Optional[int] = None
    purchase_id: Optional[str] = None
    amount: int
    currency: str
    status: TransactionStatus
    gateway_reference: Optional[str] = None
    transaction_metadata: TransactionMetadata
    created_at: datetime

    @field_validator("transaction_metadata", mode="before")
    @classmethod
    def parse_stored_metadata(cls, v):
        return parse_metadata(v)


class PaymentTransactionCreateModel(BaseModel):
    user_id: int
    subscription_id: Optional[int] = None
    purchase_id: Optional[str] = None
    amount: int
    currency: str
    status: str
    gateway_reference: Optional[str] = None
    transaction_metadata: dict = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, TransactionStatus):
            return v.value
        return v


class BillingHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    subscription_id: int
    gateway_invoice_id: str
    amount_paid: int
    currency: str
    status: InvoiceStatus
    reason: Optional[str] = None
    invoice_pdf: Optional[str] = None
    created_at: datetime


class BillingHistoryCreateModel(BaseModel):
    user_id: int
    subscription_id: int
    gateway_invoice_id: str
    amount_paid: int
    currency: str
    status: str = InvoiceStatus.PAID.value
    reason: Optional[str] = None
    invoice_pdf: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, InvoiceStatus):
            return v.value
        return v
