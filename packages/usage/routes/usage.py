"""
Usage API routes.

Metering endpoints called by product services.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter

from common.db.base import utcnow
from packages.usage.models.schemas.usage import (
    RecordUsageRequest,
    UsageRecordResponse,
    UsageSummaryResponse,
)
from packages.usage.services.usage_meter import UsageMeterService

router = APIRouter()


@router.post("/subscriptions/{subscription_id}/usage", response_model=UsageRecordResponse)
async def record_usage(subscription_id: int, request: RecordUsageRequest):
    """
    Add usage to the subscription's record for the given period.

    Usage for a period that has already ended is rejected with 422.
    """
    usage_service = UsageMeterService()
    record = await usage_service.record_usage(
        subscription_id=subscription_id,
        usage_type=request.usage_type,
        amount=request.amount,
        period_start=request.period_start,
        period_end=request.period_end,
    )
    return UsageRecordResponse.model_validate(record)


@router.get("/subscriptions/{subscription_id}/usage", response_model=UsageSummaryResponse)
async def get_usage_summary(subscription_id: int, at: Optional[datetime] = None):
    usage_service = UsageMeterService()
    at = at or utcnow()
    items = await usage_service.get_usage_summary(subscription_id, at=at)
    return UsageSummaryResponse(
        subscription_id=subscription_id,
        as_of=at,
        items=items,
        total_overage_cost=sum((i.overage_cost for i in items), Decimal(0)),
    )
