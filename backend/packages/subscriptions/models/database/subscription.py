"""
Database entity for subscriptions.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType, MONEY


class SubscriptionEntity(Base):
    """
    Subscription database entity.

    Owned polymorphically by (subscriber_type, subscriber_id). Usage counters
    and history rows are deleted with the subscription.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)

    subscriber_type = Column(String(255), nullable=False)
    subscriber_id = Column(String(255), nullable=False)

    plan_id = Column(
        BigIntegerType,
        ForeignKey("plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    status = Column(
        String(50), nullable=False, index=True
    )  # active, on_trial, cancelled, suspended, expired, incomplete

    # Lifecycle dates
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=True)  # null only for lifetime
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    grace_ends_at = Column(DateTime(timezone=True), nullable=True)

    # Captured from the plan at create/switch time
    price = Column(MONEY, nullable=False)
    billing_period = Column(String(20), nullable=False)
    snapshot = Column(JSON, nullable=False, default=dict)

    subscription_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    usages = relationship(
        "UsageEntity", cascade="all, delete-orphan", passive_deletes=True
    )
    history = relationship(
        "SubscriptionHistoryEntity", cascade="all, delete-orphan", passive_deletes=True
    )

    # Composite indexes for the sweep and owner queries
    __table_args__ = (
        Index("idx_subscription_subscriber", "subscriber_type", "subscriber_id"),
        Index("idx_subscription_status_ends", "status", "ends_at"),
    )
