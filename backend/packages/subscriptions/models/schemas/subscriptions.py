"""
API schemas for subscription operations.

Request and response models for the plan, subscription and usage endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import (
    BillingPeriod,
    ChangeType,
    HistoryEventType,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.history import SubscriptionHistory
from packages.subscriptions.models.domain.plan import Plan
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.models.domain.usage import UsageSummary


# ============================================================================
# Plan Schemas
# ============================================================================


class PlanResponse(BaseModel):
    """Public view of a catalog plan."""

    id: int
    slug: str
    name: str
    description: Optional[str] = None
    price: Decimal
    billing_period: BillingPeriod
    billing_interval: int
    period_label: str
    trial_period_days: int
    grace_period_days: int
    features: Dict[str, Any]
    is_free: bool
    sort_order: int

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            slug=plan.slug,
            name=plan.name,
            description=plan.description,
            price=plan.price,
            billing_period=plan.billing_period,
            billing_interval=plan.billing_interval,
            period_label=plan.billing_period.label(),
            trial_period_days=plan.trial_period_days,
            grace_period_days=plan.grace_period_days,
            features=plan.features,
            is_free=plan.is_free(),
            sort_order=plan.sort_order,
        )


class PlansResponse(BaseModel):
    plans: List[PlanResponse]


# ============================================================================
# Subscription Schemas
# ============================================================================


class CreateSubscriptionRequest(BaseModel):
    """Subscribe to a plan, by slug."""

    plan: str = Field(..., min_length=1, description="Plan slug")
    with_trial: bool = True
    trial_days: Optional[int] = Field(
        default=None,
        ge=0,
        description="Overrides the plan's trial length. 0 disables the trial.",
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CancelSubscriptionRequest(BaseModel):
    immediately: bool = Field(
        default=False,
        description="End access now instead of at the end of the current term",
    )


class SwitchPlanRequest(BaseModel):
    plan: str = Field(..., min_length=1, description="Plan slug")
    change_type: ChangeType = ChangeType.SWITCH
    prorate: Optional[bool] = Field(
        default=None, description="Defaults to the configured proration setting"
    )


class SubscriptionResponse(BaseModel):
    """Current state of a subscription."""

    id: int
    subscriber_type: str
    subscriber_id: str
    plan_id: int
    status: SubscriptionStatus
    is_active: bool
    has_access: bool
    on_trial: bool
    on_grace_period: bool
    pending_cancellation: bool
    price: Decimal
    billing_period: BillingPeriod
    starts_at: datetime
    ends_at: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    grace_ends_at: Optional[datetime] = None
    days_until_renewal: Optional[int] = None
    features: Dict[str, Any]

    @classmethod
    def from_subscription(
        cls, subscription: Subscription, now: Optional[datetime] = None
    ) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            subscriber_type=subscription.subscriber_type,
            subscriber_id=subscription.subscriber_id,
            plan_id=subscription.plan_id,
            status=subscription.status,
            is_active=subscription.is_active(now),
            has_access=subscription.has_access(now),
            on_trial=subscription.is_on_trial(now),
            on_grace_period=subscription.is_on_grace_period(now),
            pending_cancellation=subscription.is_pending_cancellation(now),
            price=subscription.price,
            billing_period=subscription.billing_period,
            starts_at=subscription.starts_at,
            ends_at=subscription.ends_at,
            trial_ends_at=subscription.trial_ends_at,
            cancelled_at=subscription.cancelled_at,
            suspended_at=subscription.suspended_at,
            grace_ends_at=subscription.grace_ends_at,
            days_until_renewal=subscription.days_until_renewal(now),
            features=subscription.snapshot,
        )


class HistoryEntryResponse(BaseModel):
    id: int
    event_type: HistoryEventType
    from_plan_id: Optional[int] = None
    to_plan_id: Optional[int] = None
    proration_amount: Decimal
    metadata: Dict[str, Any]
    created_at: Optional[datetime] = None

    @classmethod
    def from_history(cls, entry: SubscriptionHistory) -> "HistoryEntryResponse":
        return cls(
            id=entry.id,
            event_type=entry.event_type,
            from_plan_id=entry.from_plan_id,
            to_plan_id=entry.to_plan_id,
            proration_amount=entry.proration_amount,
            metadata=entry.history_metadata,
            created_at=entry.created_at,
        )


class HistoryResponse(BaseModel):
    subscription_id: int
    entries: List[HistoryEntryResponse]


# ============================================================================
# Usage Schemas
# ============================================================================


class RecordUsageRequest(BaseModel):
    """
    Usage write for one feature.

    ``increment`` adds ``amount``, ``decrement`` subtracts it (never below
    zero) and ``set`` overwrites the counter with it.
    """

    amount: Decimal = Field(default=Decimal("1"), ge=0)
    mode: str = Field(default="increment", pattern="^(increment|decrement|set)$")


class UsageListResponse(BaseModel):
    subscription_id: int
    usage: List[UsageSummary]


class ResetUsageResponse(BaseModel):
    subscription_id: int
    reset: int = Field(..., description="Number of counters reset")
