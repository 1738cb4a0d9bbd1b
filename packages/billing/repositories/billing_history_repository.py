"""
Repository for billing history (invoice records).
"""

from sqlalchemy import select

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span
from packages.billing.models.database.billing_history import BillingHistoryEntity
from packages.billing.models.domain.enums import InvoiceStatus
from packages.billing.models.domain.transactions import (
    BillingHistoryEntry,
    BillingHistoryCreateModel,
)


class BillingHistoryRepository(BaseRepository[BillingHistoryEntity, BillingHistoryEntry]):
    def __init__(self, db_session=None):
        super().__init__(BillingHistoryEntity, BillingHistoryEntry, db_session)

    @trace_span
    async def append(self, create_model: BillingHistoryCreateModel) -> BillingHistoryEntry:
        return await self.create(create_model)

    @trace_span
    async def list_for_user(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> list[BillingHistoryEntry]:
        return await self.page(BillingHistoryEntity.user_id == user_id, limit=limit, offset=offset)

    @trace_span
    async def has_invoice(self, gateway_invoice_id: str, status: InvoiceStatus) -> bool:
        async with self._get_session() as session:
            found = await session.scalar(
                select(BillingHistoryEntity.id)
                .where(
                    BillingHistoryEntity.gateway_invoice_id == gateway_invoice_id,
                    BillingHistoryEntity.status == status.value,
                )
                .limit(1)
            )
        return found is not None
