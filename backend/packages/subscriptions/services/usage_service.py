"""
Service for feature usage accounting.

Counters are materialised lazily per (subscription, feature) with the limit
taken from the subscription's feature snapshot. The ledger never changes a
subscription's status; it only reports.

UsageLimitExceeded is published on the crossing write only (used was below
the limit before, at or above it after). Further writes past the limit just
publish UsageRecorded. A zero limit counts as already exceeded, so it never
produces a crossing.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from functools import partial
from typing import List, Optional, Union

from common.core.exceptions import ValidationError
from common.core.otel_exporter import get_logger, trace_span
from common.core.time_utils import utc_now
from common.db.context import after_commit
from packages.subscriptions.models.domain.events import (
    UsageLimitExceeded,
    UsageRecorded,
)
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.models.domain.usage import Usage
from packages.subscriptions.providers.events.factory import get_event_sink
from packages.subscriptions.providers.events.interface import SubscriptionEventSink
from packages.subscriptions.repositories.usage_repository import UsageRepository

logger = get_logger(__name__)

Amount = Union[int, float, Decimal, str]


def _to_amount(amount: Amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError(f"Invalid usage amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Usage amount must be a non-negative number, got {amount}")
    return value


class UsageService:
    """Service for per-feature usage counters."""

    def __init__(
        self,
        usage_repo: Optional[UsageRepository] = None,
        event_sink: Optional[SubscriptionEventSink] = None,
    ):
        self.usage_repo = usage_repo or UsageRepository()
        self.event_sink = event_sink or get_event_sink()

    async def _publish(self, event) -> None:
        await after_commit(partial(self.event_sink.publish, event))

    async def _after_write(
        self,
        subscription: Subscription,
        feature: str,
        amount: Decimal,
        previous_used: Decimal,
        usage: Usage,
    ) -> None:
        await self._publish(
            UsageRecorded.for_subscription(
                subscription,
                feature=feature,
                amount=amount,
                used=usage.used,
                limit=usage.limit,
            )
        )

        crossed = (
            usage.limit is not None
            and previous_used < usage.limit
            and usage.used >= usage.limit
        )
        if crossed:
            logger.warning(
                f"Usage limit reached for {feature} on subscription {subscription.id}",
                extra={
                    "subscription_id": subscription.id,
                    "feature": feature,
                    "used": str(usage.used),
                    "limit": str(usage.limit),
                },
            )
            await self._publish(
                UsageLimitExceeded.for_subscription(
                    subscription, feature=feature, used=usage.used, limit=usage.limit
                )
            )

    @trace_span
    async def get_usage(self, subscription: Subscription, feature: str) -> Usage:
        """Counter for ``feature``, created on first access."""
        limit = subscription.get_feature_limit(feature)
        return await self.usage_repo.get_or_create(
            subscription.id,
            feature,
            limit=Decimal(limit) if limit is not None else None,
            valid_until=subscription.ends_at,
        )

    @trace_span
    async def increment(
        self, subscription: Subscription, feature: str, amount: Amount = 1
    ) -> Usage:
        value = _to_amount(amount)
        usage = await self.get_usage(subscription, feature)
        updated = await self.usage_repo.increment(usage.id, value)
        # previous value derived from the atomic result, not the earlier read
        await self._after_write(
            subscription, feature, value, updated.used - value, updated
        )
        return updated

    @trace_span
    async def decrement(
        self, subscription: Subscription, feature: str, amount: Amount = 1
    ) -> Usage:
        value = _to_amount(amount)
        usage = await self.get_usage(subscription, feature)
        return await self.usage_repo.decrement(usage.id, value)

    @trace_span
    async def set(
        self, subscription: Subscription, feature: str, amount: Amount
    ) -> Usage:
        """Overwrite the counter with an absolute value."""
        value = _to_amount(amount)
        usage = await self.get_usage(subscription, feature)
        updated = await self.usage_repo.set_used(usage.id, value)
        await self._after_write(subscription, feature, value, usage.used, updated)
        return updated

    async def record(
        self, subscription: Subscription, feature: str, amount: Amount
    ) -> Usage:
        """Idempotent "current value is X" write; same as ``set``."""
        return await self.set(subscription, feature, amount)

    @trace_span
    async def reset(
        self,
        subscription: Subscription,
        feature: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Zero one counter or all of them. Limits are left alone."""
        now = now or utc_now()
        count = await self.usage_repo.reset(subscription.id, now, feature=feature)
        logger.info(
            f"Reset {count} usage counter(s) for subscription {subscription.id}",
            extra={"subscription_id": subscription.id, "feature": feature},
        )
        return count

    @trace_span
    async def sync_limits(self, subscription: Subscription) -> int:
        """Re-seed limits of existing counters from the (new) snapshot."""
        limits = {}
        for feature in subscription.snapshot:
            limit = subscription.get_feature_limit(feature)
            limits[feature] = Decimal(limit) if limit is not None else None
        return await self.usage_repo.sync_limits(
            subscription.id, limits, valid_until=subscription.ends_at
        )

    async def get(self, subscription: Subscription, feature: str) -> Decimal:
        return (await self.get_usage(subscription, feature)).used

    async def get_remaining(
        self, subscription: Subscription, feature: str
    ) -> Optional[Decimal]:
        return (await self.get_usage(subscription, feature)).get_remaining()

    async def get_percentage(self, subscription: Subscription, feature: str) -> Decimal:
        return (await self.get_usage(subscription, feature)).get_percentage()

    async def exceeds_limit(self, subscription: Subscription, feature: str) -> bool:
        return (await self.get_usage(subscription, feature)).exceeds_limit()

    async def within_limit(
        self, subscription: Subscription, feature: str, proposed: Amount = 0
    ) -> bool:
        usage = await self.get_usage(subscription, feature)
        return usage.within_limit(_to_amount(proposed))

    async def list_usages(self, subscription: Subscription) -> List[Usage]:
        return await self.usage_repo.list_for_subscription(subscription.id)
