"""
Repository for the plan catalog.
"""

from typing import Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span
from packages.billing.models.database.plan import PlanEntity
from packages.billing.models.domain.plans import Plan


class PlanRepository(BaseRepository[PlanEntity, Plan]):
    def __init__(self, db_session=None):
        super().__init__(PlanEntity, Plan, db_session)

    @trace_span
    async def get_by_id(self, plan_id: str) -> Optional[Plan]:
        async with self._get_session() as session:
            entity = await session.get(PlanEntity, plan_id)
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_active(self) -> list[Plan]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PlanEntity)
                .where(PlanEntity.is_active.is_(True))
                .order_by(PlanEntity.price_monthly)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get_many(self, plan_ids: list[str]) -> dict[str, Plan]:
        if not plan_ids:
            return {}
        async with self._get_session() as session:
            result = await session.execute(
                select(PlanEntity).where(PlanEntity.id.in_(plan_ids))
            )
            return {p.id: self._entity_to_domain(p) for p in result.scalars().all()}
