"""
Repository for dunning cases.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import select, update

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.dunning.models.database.dunning_case import DunningCaseEntity
from packages.dunning.models.domain.dunning import DunningCase, DunningStatus

_OPEN = [DunningStatus.ACTIVE.value, DunningStatus.PAUSED.value]


class DunningCaseRepository(BaseRepository[DunningCaseEntity, DunningCase]):
    def __init__(self, db_session=None):
        super().__init__(DunningCaseEntity, DunningCase, db_session)

    @trace_span
    async def get_open_for_subscription(
        self, subscription_id: int
    ) -> Optional[DunningCase]:
        async with self._get_session() as session:
            result = await session.execute(
                select(DunningCaseEntity)
                .where(
                    DunningCaseEntity.subscription_id == subscription_id,
                    DunningCaseEntity.status.in_(_OPEN),
                )
                .execution_options(populate_existing=True)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_for_subscription(self, subscription_id: int) -> list[DunningCase]:
        async with self._get_session() as session:
            result = await session.execute(
                select(DunningCaseEntity)
                .where(DunningCaseEntity.subscription_id == subscription_id)
                .order_by(DunningCaseEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_due(self, now: datetime, limit: int = 100) -> list[DunningCase]:
        """Active cases whose next attempt is at or before `now`, oldest first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(DunningCaseEntity)
                .where(
                    DunningCaseEntity.status == DunningStatus.ACTIVE.value,
                    DunningCaseEntity.next_attempt_date <= now,
                )
                .order_by(DunningCaseEntity.next_attempt_date, DunningCaseEntity.id)
                .limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def claim_attempt_notification(self, case_id: int, attempt: int) -> bool:
        """
        Mark `attempt` as notified.

        Conditional update, so concurrent scans agree on a single winner.

        Returns:
            True if this caller claimed the notification
        """
        async with self._get_session() as session:
            result = await session.execute(
                update(DunningCaseEntity)
                .where(
                    DunningCaseEntity.id == case_id,
                    DunningCaseEntity.attempt_count == attempt,
                    DunningCaseEntity.notified_attempt < attempt,
                )
                .values(notified_attempt=attempt)
            )
            await session.flush()
            return result.rowcount == 1
