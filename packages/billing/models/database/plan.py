"""
Database entity for the plan catalog.
"""

from sqlalchemy import Column, String, Boolean, Integer, JSON, Text
from sqlalchemy.sql import func

from common.db.base import Base, UtcDateTime


class PlanEntity(Base):
    """
    Plan catalog entry.

    Catalog edits never change what existing subscriptions were charged: charges
    are captured on payment transactions at the time they happen.
    """

    __tablename__ = "plans"

    id = Column(String(50), primary_key=True)  # basic, pro, premium
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # Prices in minor units of `currency`
    price_monthly = Column(Integer, nullable=False)
    price_yearly = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, server_default="USD")

    features = Column(JSON, nullable=False, default=list)
    # {distance_limit, rewards_multiplier, premium_features}
    limits = Column(JSON, nullable=False, default=dict)
    # usage_type -> included units, -1 = unlimited
    usage_limits = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, server_default="1", default=True)

    created_at = Column(UtcDateTime, server_default=func.now())
    updated_at = Column(UtcDateTime, server_default=func.now(), onupdate=func.now())
