"""
Database entity for processed gateway events (idempotency ledger).
"""

from sqlalchemy import Column, String
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, UtcDateTime, utcnow


class ProcessedEventEntity(Base):
    """
    Marker for a gateway event whose effects have been committed.

    Written in the same transaction as the effects, so a failed application
    leaves no marker and the redelivered event is applied again.
    """

    __tablename__ = "processed_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)
    outcome = Column(String(50), nullable=False)  # applied, ignored, orphan
    processed_at = Column(UtcDateTime, nullable=False, default=utcnow, server_default=func.now())
