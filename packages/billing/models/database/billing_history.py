"""
Database entity for billing history (one row per gateway invoice event).
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Text, UniqueConstraint
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UtcDateTime, utcnow


class BillingHistoryEntity(Base):
    """Invoice record. Append-only."""

    __tablename__ = "billing_history"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(BigIntegerType, nullable=False, index=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    gateway_invoice_id = Column(String(255), nullable=False, index=True)

    amount_paid = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False)  # paid
    reason = Column(String(100), nullable=True)
    invoice_pdf = Column(Text, nullable=True)

    created_at = Column(UtcDateTime, nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("gateway_invoice_id", "status", name="uq_billing_history_invoice_status"),
    )
