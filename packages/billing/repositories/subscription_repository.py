"""
Repository for subscription management.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import select, or_

from common.repositories.base import BaseRepository
from common.core.otel_axiom_exporter import trace_span
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionState,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.enums import NON_TERMINAL_STATUSES


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for user subscriptions."""

    def __init__(self, db_session=None):
        super().__init__(SubscriptionEntity, Subscription, db_session)

    @trace_span
    async def get_open_for_user(self, user_id: int) -> Optional[Subscription]:
        """The user's pending/active/trialing/past_due subscription, if any."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.user_id == user_id,
                    SubscriptionEntity.status.in_([s.value for s in NON_TERMINAL_STATUSES]),
                )
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_latest_for_user(self, user_id: int) -> Optional[Subscription]:
        """Most recent subscription regardless of status."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.user_id == user_id)
                .order_by(SubscriptionEntity.id.desc())
                .limit(1)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def find_by_gateway_refs(
        self,
        gateway_subscription_id: Optional[str] = None,
        gateway_customer_id: Optional[str] = None,
    ) -> Optional[Subscription]:
        """
        Resolve the local subscription for an inbound gateway event.

        Matches on the gateway subscription id first. A customer-id match is
        only used for a subscription that has not been bound to a gateway
        subscription yet, and prefers the newest one.
        """
        async with self._get_session() as session:
            if gateway_subscription_id:
                result = await session.execute(
                    select(SubscriptionEntity).where(
                        SubscriptionEntity.gateway_subscription_id
                        == gateway_subscription_id
                    )
                )
                entity = result.scalar_one_or_none()
                if entity:
                    return self._entity_to_domain(entity)

            if not gateway_customer_id:
                return None

            query = select(SubscriptionEntity).where(
                SubscriptionEntity.gateway_customer_id == gateway_customer_id
            )
            if gateway_subscription_id:
                query = query.where(
                    or_(
                        SubscriptionEntity.gateway_subscription_id.is_(None),
                        SubscriptionEntity.gateway_subscription_id
                        == gateway_subscription_id,
                    )
                )
            result = await session.execute(
                query.order_by(SubscriptionEntity.id.desc()).limit(1)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def apply_state(
        self, subscription_id: int, state: SubscriptionState
    ) -> Optional[Subscription]:
        """Persist a state produced by the state machine."""
        return await self.update(
            subscription_id,
            SubscriptionUpdateModel(**state.model_dump()),
        )

    @trace_span
    async def list_as_of(self, as_of: datetime) -> list[Subscription]:
        """Every subscription created at or before `as_of`."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.created_at <= as_of)
                .order_by(SubscriptionEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())
