"""
Domain events emitted by the subscription engine.

One event per committed transition. Payloads carry the before/after values a
listener needs (previous and new end date on renewal, plans and proration on
a plan change) so handlers never have to reload state.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from common.core.time_utils import utc_now
from packages.subscriptions.models.domain.enums import ChangeType
from packages.subscriptions.models.domain.subscription import Subscription


class SubscriptionEventType(str, Enum):
    CREATED = "subscription.created"
    RENEWED = "subscription.renewed"
    CANCELLED = "subscription.cancelled"
    SUSPENDED = "subscription.suspended"
    RESUMED = "subscription.resumed"
    EXPIRED = "subscription.expired"
    PLAN_CHANGED = "subscription.plan_changed"
    USAGE_RECORDED = "usage.recorded"
    USAGE_LIMIT_EXCEEDED = "usage.limit_exceeded"


class SubscriptionEvent(BaseModel):
    event_type: SubscriptionEventType
    subscription_id: int
    subscriber_type: str
    subscriber_id: str
    occurred_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_subscription(cls, subscription: Subscription, **payload):
        return cls(
            subscription_id=subscription.id,
            subscriber_type=subscription.subscriber_type,
            subscriber_id=subscription.subscriber_id,
            **payload,
        )


class SubscriptionCreated(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.CREATED
    plan_id: int
    status: str
    ends_at: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None


class SubscriptionRenewed(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.RENEWED
    previous_ends_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class SubscriptionCancelled(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.CANCELLED
    immediately: bool
    ends_at: Optional[datetime] = None


class SubscriptionSuspended(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.SUSPENDED
    reason: Optional[str] = None


class SubscriptionResumed(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.RESUMED
    ends_at: Optional[datetime] = None


class SubscriptionExpired(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.EXPIRED
    ended_at: Optional[datetime] = None
    grace_ends_at: Optional[datetime] = None


class PlanChanged(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.PLAN_CHANGED
    from_plan_id: int
    to_plan_id: int
    change_type: ChangeType
    proration_amount: Decimal = Decimal("0")
    previous_price: Decimal
    price: Decimal


class UsageRecorded(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.USAGE_RECORDED
    feature: str
    amount: Decimal
    used: Decimal
    limit: Optional[Decimal] = None


class UsageLimitExceeded(SubscriptionEvent):
    event_type: SubscriptionEventType = SubscriptionEventType.USAGE_LIMIT_EXCEEDED
    feature: str
    used: Decimal
    limit: Decimal
