"""
Repository for the processed-event idempotency ledger.
"""

from sqlalchemy import select

from common.core.otel_axiom_exporter import trace_span
from common.db.base import utcnow
from common.repositories.base import BaseRepository
from packages.billing.models.database.processed_event import ProcessedEventEntity
from packages.billing.models.domain.gateway_events import ProcessedEvent


class ProcessedEventRepository(BaseRepository[ProcessedEventEntity, ProcessedEvent]):
    def __init__(self, db_session=None):
        super().__init__(ProcessedEventEntity, ProcessedEvent, db_session)

    @trace_span
    async def is_processed(self, event_id: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(ProcessedEventEntity.id).where(
                    ProcessedEventEntity.event_id == event_id
                )
            )
            return result.scalar_one_or_none() is not None

    @trace_span
    async def mark_processed(self, event_id: str, event_type: str, outcome: str) -> None:
        """
        Record the event as processed.

        Raises:
            IntegrityError: On flush, if another delivery already recorded it
        """
        async with self._get_session() as session:
            session.add(
                ProcessedEventEntity(
                    event_id=event_id,
                    event_type=event_type,
                    outcome=outcome,
                    processed_at=utcnow(),
                )
            )
            await session.flush()
