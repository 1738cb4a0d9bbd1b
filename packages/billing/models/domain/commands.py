"""
Declarative side effects produced by state transitions.

The state machine never performs I/O; it returns these and the command executor
applies them inside the caller's transaction.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from packages.billing.models.domain.enums import (
    InvoiceStatus,
    NotificationKind,
    TransactionStatus,
)
from packages.billing.models.domain.metadata import TransactionMetadata


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class RecordTransaction(_Command):
    kind: Literal["record_transaction"] = "record_transaction"
    amount: int
    currency: str
    status: TransactionStatus
    gateway_reference: Optional[str] = None
    metadata: TransactionMetadata


class RecordBillingHistory(_Command):
    kind: Literal["record_billing_history"] = "record_billing_history"
    gateway_invoice_id: str
    amount_paid: int
    currency: str
    status: InvoiceStatus = InvoiceStatus.PAID
    reason: Optional[str] = None
    invoice_pdf: Optional[str] = None


class StartDunning(_Command):
    kind: Literal["start_dunning"] = "start_dunning"
    reason: str
    failed_at: datetime
    gateway_invoice_id: Optional[str] = None


class ResolveDunning(_Command):
    kind: Literal["resolve_dunning"] = "resolve_dunning"
    reason: str


class Notify(_Command):
    kind: Literal["notify"] = "notify"
    notification: NotificationKind
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


Command = Annotated[
    Union[RecordTransaction, RecordBillingHistory, StartDunning, ResolveDunning, Notify],
    Field(discriminator="kind"),
]
