"""
Database entity for subscriptions.
"""

from sqlalchemy import Column, String, ForeignKey, Index, text
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UtcDateTime, utcnow

_OPEN_STATUSES = "status IN ('pending', 'active', 'trialing', 'past_due')"


class SubscriptionEntity(Base):
    """
    User subscription database entity.

    At most one open (pending/active/trialing/past_due) row per user, enforced
    by a partial unique index.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(BigIntegerType, nullable=False, index=True)
    plan_id = Column(String(50), ForeignKey("plans.id"), nullable=False, index=True)
    billing_cycle = Column(String(20), nullable=False)  # monthly, yearly
    status = Column(
        String(50), nullable=False, index=True
    )  # pending, active, trialing, past_due, unpaid, canceled

    # Billing period [start, end)
    current_period_start = Column(UtcDateTime, nullable=True)
    current_period_end = Column(UtcDateTime, nullable=True)
    trial_start = Column(UtcDateTime, nullable=True)
    trial_end = Column(UtcDateTime, nullable=True)
    canceled_at = Column(UtcDateTime, nullable=True)

    # Gateway join keys for inbound events
    payment_provider = Column(String(50), nullable=False, server_default="stripe")
    gateway_customer_id = Column(String(255), nullable=True, index=True)
    gateway_subscription_id = Column(String(255), nullable=True, unique=True, index=True)

    created_at = Column(UtcDateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(UtcDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "uq_subscription_open_per_user",
            "user_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUSES),
            sqlite_where=text(_OPEN_STATUSES),
        ),
        Index("idx_subscription_status_plan", "status", "plan_id"),
    )
