"""
Database entity for usage records.
"""

from sqlalchemy import Column, String, ForeignKey, Numeric, UniqueConstraint, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UtcDateTime, utcnow

USAGE_NUMERIC = Numeric(20, 6)


class UsageRecordEntity(Base):
    """
    Accumulated usage for one (subscription, usage type, billing period).

    Periods are half-open [period_start, period_end). Rows are written only by
    the usage meter and only while the period is open.
    """

    __tablename__ = "usage_records"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType, ForeignKey("subscriptions.id"), nullable=False, index=True
    )
    usage_type = Column(
        String(50), nullable=False
    )  # api_calls, storage, bandwidth, transactions

    period_start = Column(UtcDateTime, nullable=False)
    period_end = Column(UtcDateTime, nullable=False)

    amount = Column(USAGE_NUMERIC, nullable=False, default=0)
    rate_per_unit = Column(USAGE_NUMERIC, nullable=False)
    overage_cost = Column(USAGE_NUMERIC, nullable=False, default=0)

    created_at = Column(UtcDateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(UtcDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "subscription_id",
            "usage_type",
            "period_start",
            name="uq_usage_record_period",
        ),
        Index("idx_usage_record_period_end", "period_end"),
    )
