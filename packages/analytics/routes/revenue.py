"""
Revenue analytics API routes.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from packages.analytics.models.schemas.revenue import RevenueSnapshotResponse
from packages.analytics.services.revenue_analytics import RevenueAnalyticsService

router = APIRouter()


@router.get("/revenue", response_model=RevenueSnapshotResponse)
async def get_revenue_snapshot(
    as_of: Optional[datetime] = None,
    churn_window_days: Optional[int] = Query(default=None, ge=1),
):
    """
    Revenue metrics as of a point in time.

    Without `churn_window_days` the configured churn window is used.
    """
    analytics_service = RevenueAnalyticsService()
    if churn_window_days is None:
        snapshot = await analytics_service.compute_snapshot(as_of=as_of)
    else:
        snapshot = await analytics_service.compute_snapshot(
            as_of=as_of, churn_window_days=churn_window_days
        )
    return RevenueSnapshotResponse.model_validate(snapshot)
