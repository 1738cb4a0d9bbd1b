"""
Database entity for dunning cases.
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Index, text
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UtcDateTime, utcnow

_OPEN_STATUSES = "status IN ('active', 'paused')"


class DunningCaseEntity(Base):
    """
    Retry bookkeeping for a subscription whose payment failed.

    At most one open (active/paused) case per subscription, enforced by a
    partial unique index.
    """

    __tablename__ = "dunning_cases"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType, ForeignKey("subscriptions.id"), nullable=False, index=True
    )
    user_id = Column(BigIntegerType, nullable=False, index=True)
    status = Column(
        String(50), nullable=False, index=True
    )  # active, paused, resolved, exhausted

    attempt_count = Column(Integer, nullable=False, default=1)
    max_attempts = Column(Integer, nullable=False)
    # Highest attempt a dunning_attempt notification was sent for
    notified_attempt = Column(Integer, nullable=False, default=0, server_default="0")

    first_failure_at = Column(UtcDateTime, nullable=False)
    next_attempt_date = Column(UtcDateTime, nullable=True, index=True)
    last_attempt_at = Column(UtcDateTime, nullable=True)
    failure_reason = Column(String(255), nullable=True)
    gateway_invoice_id = Column(String(255), nullable=True)

    resolved_at = Column(UtcDateTime, nullable=True)
    resolution_reason = Column(String(100), nullable=True)

    created_at = Column(UtcDateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(UtcDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "uq_dunning_case_open_per_subscription",
            "subscription_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUSES),
            sqlite_where=text(_OPEN_STATUSES),
        ),
        Index("idx_dunning_case_status_next", "status", "next_attempt_date"),
    )
