"""
Database entity for the subscription audit trail.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, MONEY


class SubscriptionHistoryEntity(Base):
    """Append-only. Rows are inserted, never updated."""

    __tablename__ = "subscription_history"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_plan_id = Column(
        BigIntegerType, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True
    )
    to_plan_id = Column(
        BigIntegerType, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True
    )

    event_type = Column(
        String(50), nullable=False, index=True
    )  # created, upgrade, downgrade, switch, cancelled
    proration_amount = Column(MONEY, nullable=False, server_default="0")
    history_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        Index("idx_history_subscription_date", "subscription_id", "created_at"),
    )
