"""
Domain models for dunning cases.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from packages.billing.models.domain.inputs import CancelSubscription


class DunningStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    RESOLVED = "resolved"
    EXHAUSTED = "exhausted"


class DunningCase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_id: int
    user_id: int
    status: DunningStatus
    attempt_count: int
    max_attempts: int
    notified_attempt: int = 0
    first_failure_at: datetime
    next_attempt_date: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    gateway_invoice_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_reason: Optional[str] = None
    created_at: datetime

    def is_due(self, now: datetime) -> bool:
        return (
            self.status == DunningStatus.ACTIVE
            and self.next_attempt_date is not None
            and self.next_attempt_date <= now
        )


class DunningCaseCreateModel(BaseModel):
    subscription_id: int
    user_id: int
    status: str = DunningStatus.ACTIVE.value
    attempt_count: int = 1
    max_attempts: int
    first_failure_at: datetime
    next_attempt_date: Optional[datetime] = None
    failure_reason: Optional[str] = None
    gateway_invoice_id: Optional[str] = None


class DunningCaseUpdateModel(BaseModel):
    status: Optional[str] = None
    attempt_count: Optional[int] = None
    next_attempt_date: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    gateway_invoice_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_reason: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, DunningStatus):
            return v.value
        return v


class RetryOutcome(BaseModel):
    """
    Result of recording a retry.

    `cancellation` is set when the retry exhausted the schedule; the caller
    applies it to the subscription under the same lock and transaction.
    """

    case: DunningCase
    applied: bool = True
    recovered: bool = False
    cancellation: Optional[CancelSubscription] = None
