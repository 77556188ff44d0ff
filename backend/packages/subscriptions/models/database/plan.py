"""
Database entity for catalog plans.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text
from sqlalchemy.sql import func, expression

from common.db.base import Base, BigIntegerType, MONEY


class PlanEntity(Base):
    """
    Plan catalog entity.

    Deactivating a plan only hides it from the catalog; subscriptions keep
    their own price/feature snapshot.
    """

    __tablename__ = "plans"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    price = Column(MONEY, nullable=False, server_default="0")
    billing_period = Column(
        String(20), nullable=False, server_default="monthly"
    )  # daily, weekly, monthly, quarterly, yearly, lifetime
    billing_interval = Column(Integer, nullable=False, server_default="1")

    trial_period_days = Column(Integer, nullable=False, server_default="0")
    grace_period_days = Column(Integer, nullable=False, server_default="0")

    # {"api_calls": 1000, "priority_support": true}
    features = Column(JSON, nullable=False, default=dict)
    plan_metadata = Column("metadata", JSON, nullable=False, default=dict)

    is_active = Column(
        Boolean, nullable=False, server_default=expression.true(), index=True
    )
    sort_order = Column(Integer, nullable=False, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_plan_active_sort", "is_active", "sort_order"),)
