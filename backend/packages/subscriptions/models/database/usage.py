"""
Database entity for feature usage counters.
"""

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class UsageEntity(Base):
    """
    One counter per (subscription, feature).

    ``used`` is only ever changed through single UPDATE statements so that
    concurrent writers cannot lose increments.
    """

    __tablename__ = "subscription_usages"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feature = Column(String(255), nullable=False)

    used = Column(Numeric(18, 4), nullable=False, server_default="0")
    limit = Column(Numeric(18, 4), nullable=True)  # null = unlimited

    valid_until = Column(DateTime(timezone=True), nullable=True)
    reset_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("subscription_id", "feature", name="uq_usage_subscription_feature"),
    )
