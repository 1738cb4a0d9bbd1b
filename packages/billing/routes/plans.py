"""
Plans API routes.

Public endpoints for the plan catalog.
"""

from fastapi import APIRouter

from packages.billing.models.schemas.billing import PlanResponse, PlansResponse
from packages.billing.services.plans_service import PlansService

router = APIRouter()


@router.get("", response_model=PlansResponse)
async def get_plans():
    """
    Get all active plans.

    Returns pricing, limits, and included usage for each plan.
    """
    plans_service = PlansService()
    plans = await plans_service.list_plans()
    return PlansResponse(plans=[PlanResponse.from_plan(p) for p in plans])


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: str):
    plans_service = PlansService()
    return PlanResponse.from_plan(await plans_service.get_active_plan(plan_id))
