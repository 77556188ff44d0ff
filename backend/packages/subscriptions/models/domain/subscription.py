"""
Domain models for subscriptions.

``Subscription`` is the aggregate root. Its transition methods only mutate
the in-memory model and enforce preconditions; ``SubscriptionService``
persists the result, writes history and publishes events.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from common.core.exceptions import InvalidStateError
from common.core.time_utils import UTCDateTime, utc_now
from packages.subscriptions.models.domain.enums import (
    BillingPeriod,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.features import feature_limit_as_int
from packages.subscriptions.models.domain.plan import Plan
from packages.subscriptions.models.domain.subscriber import SubscriberRef

SUSPENSION_REASON_KEY = "suspension_reason"


class Subscription(BaseModel):
    """
    A subscriber's subscription to a plan.

    Access is always derived from status *and* dates at call time:
    - CANCELLED covers both a soft cancel (runs until ends_at) and an
      immediate one (ends_at pulled to the cancel time)
    - a stale trial_ends_at is ignored unless status is ON_TRIAL
    - ends_at is None only for lifetime subscriptions
    """

    id: int
    subscriber_type: str
    subscriber_id: str
    plan_id: int

    status: SubscriptionStatus

    # Lifecycle dates
    trial_ends_at: Optional[UTCDateTime] = None
    starts_at: UTCDateTime
    ends_at: Optional[UTCDateTime] = None
    cancelled_at: Optional[UTCDateTime] = None
    suspended_at: Optional[UTCDateTime] = None
    grace_ends_at: Optional[UTCDateTime] = None

    # Captured from the plan at create/switch time
    price: Decimal
    billing_period: BillingPeriod
    snapshot: Dict[str, Any] = Field(default_factory=dict)

    subscription_metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True
        validate_assignment = True

    @field_validator("snapshot", "subscription_metadata", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or {}

    @property
    def subscriber(self) -> SubscriberRef:
        return SubscriberRef(type=self.subscriber_type, id=self.subscriber_id)

    # ------------------------------------------------------------------
    # Derived state. Never cached: every call looks at the clock.
    # ------------------------------------------------------------------

    def has_ended(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return self.ends_at is not None and self.ends_at <= now

    def is_on_trial(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return (
            self.status == SubscriptionStatus.ON_TRIAL
            and self.trial_ends_at is not None
            and self.trial_ends_at > now
        )

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        if not self.status.is_active() or self.has_ended(now):
            return False
        if self.status == SubscriptionStatus.ON_TRIAL:
            return self.is_on_trial(now)
        return True

    def is_on_grace_period(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return self.grace_ends_at is not None and self.grace_ends_at > now

    def has_access(self, now: Optional[datetime] = None) -> bool:
        """Active, or expired but still inside the grace window."""
        now = now or utc_now()
        return self.is_active(now) or self.is_on_grace_period(now)

    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED

    def is_pending_cancellation(self, now: Optional[datetime] = None) -> bool:
        """Soft-cancelled: cancelled_at is set but the term is still running."""
        return (
            self.cancelled_at is not None
            and self.status.is_active()
            and not self.has_ended(now)
        )

    def is_suspended(self) -> bool:
        return self.status == SubscriptionStatus.SUSPENDED

    def is_expired(self) -> bool:
        return self.status == SubscriptionStatus.EXPIRED

    def is_lifetime(self) -> bool:
        return self.billing_period.is_lifetime()

    def days_until_renewal(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.ends_at is None:
            return None
        now = now or utc_now()
        return max(0, (self.ends_at - now).days)

    # ------------------------------------------------------------------
    # Features. The snapshot wins over the live plan.
    # ------------------------------------------------------------------

    def has_feature(self, feature: str, plan: Optional[Plan] = None) -> bool:
        if feature in self.snapshot:
            return True
        return plan.has_feature(feature) if plan else False

    def get_feature_value(
        self, feature: str, plan: Optional[Plan] = None, default: Any = None
    ) -> Any:
        if feature in self.snapshot:
            return self.snapshot[feature]
        if plan:
            return plan.get_feature_value(feature, default)
        return default

    def get_feature_limit(
        self, feature: str, plan: Optional[Plan] = None
    ) -> Optional[int]:
        return feature_limit_as_int(self.get_feature_value(feature, plan))

    def can_use_feature(
        self, feature: str, plan: Optional[Plan] = None, now: Optional[datetime] = None
    ) -> bool:
        return self.is_active(now) and self.has_feature(feature, plan)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _ensure_not_expired(self, action: str) -> None:
        if self.status == SubscriptionStatus.EXPIRED:
            raise InvalidStateError(
                f"Cannot {action} subscription {self.id}: subscription has expired"
            )

    def cancel(self, immediately: bool = False, now: Optional[datetime] = None) -> None:
        now = now or utc_now()
        self._ensure_not_expired("cancel")
        if self.status == SubscriptionStatus.CANCELLED:
            raise InvalidStateError(f"Subscription {self.id} is already cancelled")

        if not immediately and self.ends_at is None:
            raise InvalidStateError(
                f"Subscription {self.id} has no end date; cancel it immediately"
            )

        self.cancelled_at = now
        if immediately:
            self.status = SubscriptionStatus.CANCELLED
            if self.starts_at > now:
                self.starts_at = now
            self.ends_at = now

    def suspend(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        now = now or utc_now()
        self._ensure_not_expired("suspend")
        self.status = SubscriptionStatus.SUSPENDED
        self.suspended_at = now
        if reason:
            self.subscription_metadata = {
                **self.subscription_metadata,
                SUSPENSION_REASON_KEY: reason,
            }

    def resume(self, plan: Plan, now: Optional[datetime] = None) -> None:
        """
        Undo a cancellation or suspension.

        A term that already ran out (immediate cancel, long suspension) is
        restarted at ``now`` with a fresh period.
        """
        now = now or utc_now()
        if self.status.is_resumable():
            self.status = SubscriptionStatus.ACTIVE
            self.suspended_at = None
            self.cancelled_at = None
            metadata = dict(self.subscription_metadata)
            metadata.pop(SUSPENSION_REASON_KEY, None)
            self.subscription_metadata = metadata
            if self.has_ended(now):
                self.starts_at = now
                self.ends_at = plan.calculate_next_billing_date(now)
            return

        if self.is_pending_cancellation(now):
            self.cancelled_at = None
            return

        raise InvalidStateError(
            f"Cannot resume subscription {self.id} with status {self.status.value}"
        )

    def renew(self, plan: Plan, now: Optional[datetime] = None) -> Optional[datetime]:
        """Roll the term forward one period. Returns the previous end date."""
        now = now or utc_now()
        self._ensure_not_expired("renew")
        if plan.is_lifetime():
            raise InvalidStateError(
                f"Subscription {self.id} is on a lifetime plan and never renews"
            )

        previous_end = self.ends_at
        base = previous_end or now
        self.starts_at = base
        self.ends_at = plan.calculate_next_billing_date(base)
        self.status = SubscriptionStatus.ACTIVE
        self.cancelled_at = None
        self.grace_ends_at = None
        return previous_end

    def expire(
        self,
        plan: Optional[Plan] = None,
        now: Optional[datetime] = None,
        grace_enabled: bool = True,
    ) -> None:
        now = now or utc_now()
        self._ensure_not_expired("expire")
        if not self.has_ended(now):
            raise InvalidStateError(
                f"Subscription {self.id} has not reached its end date"
            )

        self.status = SubscriptionStatus.EXPIRED
        if grace_enabled and plan and plan.grace_period_days > 0:
            self.grace_ends_at = self.ends_at + timedelta(days=plan.grace_period_days)

    def apply_plan(self, plan: Plan) -> None:
        """Point at ``plan`` and re-capture its price, period and features."""
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.ON_TRIAL):
            raise InvalidStateError(
                f"Cannot change plan of subscription {self.id} with status {self.status.value}"
            )
        self.plan_id = plan.id
        self.price = plan.price
        self.billing_period = plan.billing_period
        self.snapshot = dict(plan.features)


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription row."""

    subscriber_type: str
    subscriber_id: str
    plan_id: int
    status: SubscriptionStatus
    trial_ends_at: Optional[datetime] = None
    starts_at: datetime
    ends_at: Optional[datetime] = None
    price: Decimal
    billing_period: BillingPeriod
    snapshot: Dict[str, Any] = Field(default_factory=dict)
    subscription_metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True

    @classmethod
    def from_plan(
        cls,
        subscriber: SubscriberRef,
        plan: Plan,
        starts_at: datetime,
        trial_days: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> "SubscriptionCreateModel":
        """
        Initial state of a subscription to ``plan``.

        ``trial_days`` > 0 starts the subscription ON_TRIAL with the trial
        measured from ``now``; otherwise it starts ACTIVE.
        """
        now = now or utc_now()
        on_trial = trial_days > 0
        return cls(
            subscriber_type=subscriber.type,
            subscriber_id=subscriber.id,
            plan_id=plan.id,
            status=SubscriptionStatus.ON_TRIAL if on_trial else SubscriptionStatus.ACTIVE,
            trial_ends_at=now + timedelta(days=trial_days) if on_trial else None,
            starts_at=starts_at,
            ends_at=plan.calculate_next_billing_date(starts_at),
            price=plan.price,
            billing_period=plan.billing_period,
            snapshot=dict(plan.features),
            subscription_metadata=metadata or {},
        )
