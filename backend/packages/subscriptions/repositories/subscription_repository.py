"""
Repository for subscriptions.

Every query that depends on "now" takes it as an argument; nothing here
reads the clock.
"""

from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import or_, select, update

from common.core.exceptions import NotFoundError
from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.subscriber import SubscriberRef
from packages.subscriptions.models.domain.subscription import Subscription
from common.core.otel_exporter import trace_span

ACTIVE_STATUSES = (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.ON_TRIAL.value)
EXPIRABLE_STATUSES = ACTIVE_STATUSES + (SubscriptionStatus.CANCELLED.value,)

# Fields the lifecycle may change after creation
MUTABLE_FIELDS = (
    "plan_id",
    "status",
    "trial_ends_at",
    "starts_at",
    "ends_at",
    "cancelled_at",
    "suspended_at",
    "grace_ends_at",
    "price",
    "billing_period",
    "snapshot",
    "subscription_metadata",
)


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing subscriptions."""

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    def _for_subscriber(self, query, subscriber: SubscriberRef):
        return query.where(
            SubscriptionEntity.subscriber_type == subscriber.type,
            SubscriptionEntity.subscriber_id == subscriber.id,
        )

    @staticmethod
    def _newest_first(query):
        return query.order_by(
            SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc()
        )

    @trace_span
    async def save(self, subscription: Subscription) -> Subscription:
        """Write the aggregate's mutable fields back to its row."""
        values = subscription.model_dump(include=set(MUTABLE_FIELDS))
        values["status"] = subscription.status.value
        values["billing_period"] = subscription.billing_period.value

        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription.id)
                .values(values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Subscription {subscription.id} not found")
            refreshed = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.id == subscription.id)
                .execution_options(populate_existing=True)
            )
            return self._entity_to_domain(refreshed.scalar_one())

    @trace_span
    async def get_for_subscriber(self, subscriber: SubscriberRef) -> List[Subscription]:
        """All subscriptions of a subscriber, newest first."""
        query = self._newest_first(
            self._for_subscriber(select(SubscriptionEntity), subscriber)
        )
        async with self._get_session() as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get_active_for_subscriber(
        self, subscriber: SubscriberRef, now: datetime
    ) -> Optional[Subscription]:
        """
        Most recent subscription with status active/on_trial whose term has
        not ended (ends_at null or in the future).
        """
        query = self._newest_first(
            self._for_subscriber(select(SubscriptionEntity), subscriber).where(
                SubscriptionEntity.status.in_(ACTIVE_STATUSES),
                or_(
                    SubscriptionEntity.ends_at.is_(None),
                    SubscriptionEntity.ends_at > now,
                ),
            )
        ).limit(1)

        async with self._get_session() as session:
            result = await session.execute(query)
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_latest_cancelled_for_subscriber(
        self, subscriber: SubscriberRef
    ) -> Optional[Subscription]:
        query = self._newest_first(
            self._for_subscriber(select(SubscriptionEntity), subscriber).where(
                SubscriptionEntity.status == SubscriptionStatus.CANCELLED.value
            )
        ).limit(1)

        async with self._get_session() as session:
            result = await session.execute(query)
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def list_due_for_renewal(
        self, now: datetime, lookahead: timedelta
    ) -> List[Subscription]:
        """Active, not cancelled, ending within (now, now + lookahead]."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
                    SubscriptionEntity.cancelled_at.is_(None),
                    SubscriptionEntity.ends_at > now,
                    SubscriptionEntity.ends_at <= now + lookahead,
                )
                .order_by(SubscriptionEntity.ends_at, SubscriptionEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_expired(self, now: datetime) -> List[Subscription]:
        """Active, on-trial or cancelled subscriptions whose ends_at has passed."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.status.in_(EXPIRABLE_STATUSES),
                    SubscriptionEntity.ends_at < now,
                )
                .order_by(SubscriptionEntity.ends_at, SubscriptionEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_expiring_soon(self, now: datetime, days: int) -> List[Subscription]:
        """Active or on-trial subscriptions ending within the next ``days`` days."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.status.in_(ACTIVE_STATUSES),
                    SubscriptionEntity.ends_at > now,
                    SubscriptionEntity.ends_at <= now + timedelta(days=days),
                )
                .order_by(SubscriptionEntity.ends_at, SubscriptionEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def list_active(self, now: datetime) -> List[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.status.in_(ACTIVE_STATUSES),
                    or_(
                        SubscriptionEntity.ends_at.is_(None),
                        SubscriptionEntity.ends_at > now,
                    ),
                )
                .order_by(SubscriptionEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())
