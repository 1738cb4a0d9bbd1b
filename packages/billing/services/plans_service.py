"""Service for retrieving billing plan information."""

from typing import Optional

from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.plans import Plan, PlanCreateModel, UNLIMITED
from packages.billing.repositories.plan_repository import PlanRepository

logger = get_logger(__name__)

# Catalog seeded into an empty plans table
DEFAULT_PLANS = [
    PlanCreateModel(
        id="basic",
        name="Basic",
        description="Get started for free",
        price_monthly=0,
        price_yearly=0,
        features=["Core tracking", "Community support"],
        limits={"distance_limit": 50, "rewards_multiplier": "1.0", "premium_features": False},
        usage_limits={"api_calls": 1000, "storage": 1, "bandwidth": 5, "transactions": 100},
    ),
    PlanCreateModel(
        id="pro",
        name="Pro",
        description="For regular users",
        price_monthly=999,
        price_yearly=9990,
        features=["Everything in Basic", "Advanced analytics", "Priority support"],
        limits={"distance_limit": 500, "rewards_multiplier": "1.5", "premium_features": True},
        usage_limits={"api_calls": 10000, "storage": 10, "bandwidth": 50, "transactions": 1000},
    ),
    PlanCreateModel(
        id="premium",
        name="Premium",
        description="Unlimited everything",
        price_monthly=1999,
        price_yearly=19990,
        features=["Everything in Pro", "Unlimited distance", "Dedicated support"],
        limits={
            "distance_limit": UNLIMITED,
            "rewards_multiplier": "2.0",
            "premium_features": True,
        },
        usage_limits={
            "api_calls": UNLIMITED,
            "storage": 100,
            "bandwidth": UNLIMITED,
            "transactions": UNLIMITED,
        },
    ),
]


class PlansService:
    """Service for retrieving plan information."""

    def __init__(self, plan_repo: Optional[PlanRepository] = None):
        self.plan_repo = plan_repo or PlanRepository()

    @trace_span
    async def list_plans(self) -> list[Plan]:
        """Active plans, cheapest first."""
        return await self.plan_repo.list_active()

    @trace_span
    async def get_plan(self, plan_id: str) -> Plan:
        plan = await self.plan_repo.get_by_id(plan_id)
        if not plan:
            raise NotFoundError(f"Plan '{plan_id}' not found")
        return plan

    @trace_span
    async def get_active_plan(self, plan_id: str) -> Plan:
        """Plan that can still be subscribed to."""
        plan = await self.get_plan(plan_id)
        if not plan.is_active:
            raise NotFoundError(f"Plan '{plan_id}' is no longer offered")
        return plan

    @trace_span
    async def seed_default_catalog(self) -> list[Plan]:
        """Insert the default plans that are missing. Existing plans are left as they are."""
        existing = await self.plan_repo.get_many([p.id for p in DEFAULT_PLANS])
        created = []
        for plan in DEFAULT_PLANS:
            if plan.id in existing:
                continue
            created.append(await self.plan_repo.create(plan))
        if created:
            logger.info(
                f"Seeded {len(created)} plans",
                extra={"plan_ids": [p.id for p in created]},
            )
        return created
