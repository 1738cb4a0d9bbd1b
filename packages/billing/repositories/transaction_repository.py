"""
Repository for the append-only payment transaction ledger.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span
from packages.billing.models.database.payment_transaction import (
    PaymentTransactionEntity,
)
from packages.billing.models.domain.enums import TransactionStatus
from packages.billing.models.domain.transactions import (
    PaymentTransaction,
    PaymentTransactionCreateModel,
)


class PaymentTransactionRepository(
    BaseRepository[PaymentTransactionEntity, PaymentTransaction]
):
    """Insert and query payment transactions. There is no update path."""

    def __init__(self, db_session=None):
        super().__init__(PaymentTransactionEntity, PaymentTransaction, db_session)

    @trace_span
    async def append(self, create_model: PaymentTransactionCreateModel) -> PaymentTransaction:
        return await self.create(create_model)

    @trace_span
    async def list_for_user(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> list[PaymentTransaction]:
        return await self.page(
            PaymentTransactionEntity.user_id == user_id, limit=limit, offset=offset
        )

    @trace_span
    async def list_for_subscription(self, subscription_id: int) -> list[PaymentTransaction]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentTransactionEntity)
                .where(PaymentTransactionEntity.subscription_id == subscription_id)
                .order_by(PaymentTransactionEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_as_of(
        self, as_of: datetime, since: Optional[datetime] = None
    ) -> list[PaymentTransaction]:
        """Transactions created in (since, as_of]."""
        query = select(PaymentTransactionEntity).where(
            PaymentTransactionEntity.created_at <= as_of
        )
        if since is not None:
            query = query.where(PaymentTransactionEntity.created_at > since)
        async with self._get_session() as session:
            result = await session.execute(query.order_by(PaymentTransactionEntity.id))
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def has_reference(self, gateway_reference: str, status: TransactionStatus) -> bool:
        """Whether a transaction with this gateway reference and status is already booked."""
        async with self._get_session() as session:
            found = await session.scalar(
                select(PaymentTransactionEntity.id)
                .where(
                    PaymentTransactionEntity.gateway_reference == gateway_reference,
                    PaymentTransactionEntity.status == status.value,
                )
                .limit(1)
            )
        return found is not None
