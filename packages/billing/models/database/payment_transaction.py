"""
Database entity for payment transactions.
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Index, JSON, text
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UtcDateTime, utcnow

_SUCCEEDED_WITH_REFERENCE = "status = 'succeeded' AND gateway_reference IS NOT NULL"


class PaymentTransactionEntity(Base):
    """
    One attempted money movement. Append-only: rows are never updated.
    """

    __tablename__ = "payment_transactions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(BigIntegerType, nullable=False, index=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    purchase_id = Column(String(255), nullable=True, index=True)

    amount = Column(Integer, nullable=False)  # minor units
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, index=True)

    gateway_reference = Column(String(255), nullable=True, index=True)

    # Tagged by "kind": subscription_invoice, one_time_purchase, proration, extension
    transaction_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(UtcDateTime, nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_transaction_status_created", "status", "created_at"),
        # One booked payment per gateway invoice or payment intent
        Index(
            "uq_transaction_succeeded_reference",
            "gateway_reference",
            unique=True,
            postgresql_where=text(_SUCCEEDED_WITH_REFERENCE),
            sqlite_where=text(_SUCCEEDED_WITH_REFERENCE),
        ),
    )
