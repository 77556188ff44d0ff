"""
Capability mixin for anything that can own subscriptions.

    class Team(HasSubscriptions):
        subscriber_type = "team"

        def __init__(self, id):
            self.id = id

    team = Team(7)
    await team.subscribe_to("pro")
    if await team.can_use_feature("exports"):
        await team.increment_usage("exports")

The owner is identified by ``subscriber_type`` (defaults to the lower-cased
class name) and ``subscriber_key()`` (defaults to ``self.id``). Usage helpers
return None / zero-ish values when there is no active subscription, plan
change helpers raise NotFoundError.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from common.core.exceptions import NotFoundError
from packages.subscriptions.models.domain.enums import ChangeType
from packages.subscriptions.models.domain.history import SubscriptionHistory
from packages.subscriptions.models.domain.plan import Plan
from packages.subscriptions.models.domain.subscriber import SubscriberRef
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.models.domain.usage import Usage
from packages.subscriptions.services.subscription_service import (
    PlanRef,
    SubscriptionService,
)


class HasSubscriptions:
    subscriber_type: Optional[str] = None

    def subscriber_key(self) -> Any:
        return self.id

    def subscriber_ref(self) -> SubscriberRef:
        return SubscriberRef(
            type=self.subscriber_type or type(self).__name__.lower(),
            id=self.subscriber_key(),
        )

    def subscription_service(self) -> SubscriptionService:
        return SubscriptionService()

    # Subscriptions

    async def subscriptions(self) -> List[Subscription]:
        return await self.subscription_service().list_for(self.subscriber_ref())

    async def active_subscription(
        self, now: Optional[datetime] = None
    ) -> Optional[Subscription]:
        return await self.subscription_service().get_active_for(
            self.subscriber_ref(), now=now
        )

    async def subscribe_to(self, plan: PlanRef, **options) -> Subscription:
        """Options are passed to ``SubscriptionService.create``."""
        return await self.subscription_service().create(
            self.subscriber_ref(), plan, **options
        )

    async def has_active_subscription(self, now: Optional[datetime] = None) -> bool:
        return await self.active_subscription(now) is not None

    async def subscribed_to(self, plan: PlanRef, now: Optional[datetime] = None) -> bool:
        subscription = await self.active_subscription(now)
        if not subscription:
            return False
        if isinstance(plan, Plan):
            return subscription.plan_id == plan.id
        if isinstance(plan, int):
            return subscription.plan_id == plan
        current = await self.subscription_service().plan_repo.get(subscription.plan_id)
        return current is not None and current.slug == plan

    async def on_trial(self, now: Optional[datetime] = None) -> bool:
        subscription = await self.active_subscription(now)
        return subscription.is_on_trial(now) if subscription else False

    async def on_grace_period(self, now: Optional[datetime] = None) -> bool:
        """True while the latest subscription is inside its post-expiry grace window."""
        subscriptions = await self.subscriptions()
        return bool(subscriptions) and subscriptions[0].is_on_grace_period(now)

    async def subscription_history(self) -> List[SubscriptionHistory]:
        subscription = await self.active_subscription()
        if not subscription:
            return []
        return await self.subscription_service().get_history(subscription.id)

    # Features

    async def _plan_for(self, subscription: Subscription) -> Optional[Plan]:
        return await self.subscription_service().plan_repo.get(subscription.plan_id)

    async def can_use_feature(self, feature: str, now: Optional[datetime] = None) -> bool:
        subscription = await self.active_subscription(now)
        if not subscription:
            return False
        return subscription.can_use_feature(
            feature, plan=await self._plan_for(subscription), now=now
        )

    async def has_feature(self, feature: str) -> bool:
        subscription = await self.active_subscription()
        if not subscription:
            return False
        return subscription.has_feature(feature, plan=await self._plan_for(subscription))

    async def get_feature_value(self, feature: str, default: Any = None) -> Any:
        subscription = await self.active_subscription()
        if not subscription:
            return default
        return subscription.get_feature_value(
            feature, plan=await self._plan_for(subscription), default=default
        )

    async def get_feature_limit(self, feature: str) -> Optional[int]:
        subscription = await self.active_subscription()
        if not subscription:
            return None
        return subscription.get_feature_limit(
            feature, plan=await self._plan_for(subscription)
        )

    # Usage

    async def record_usage(self, feature: str, amount) -> Optional[Usage]:
        subscription = await self.active_subscription()
        if not subscription:
            return None
        return await self.subscription_service().usage_service.record(
            subscription, feature, amount
        )

    async def increment_usage(self, feature: str, amount=1) -> Optional[Usage]:
        subscription = await self.active_subscription()
        if not subscription:
            return None
        return await self.subscription_service().usage_service.increment(
            subscription, feature, amount
        )

    async def decrement_usage(self, feature: str, amount=1) -> Optional[Usage]:
        subscription = await self.active_subscription()
        if not subscription:
            return None
        return await self.subscription_service().usage_service.decrement(
            subscription, feature, amount
        )

    async def set_usage(self, feature: str, amount) -> Optional[Usage]:
        return await self.record_usage(feature, amount)

    async def get_usage(self, feature: str) -> Decimal:
        subscription = await self.active_subscription()
        if not subscription:
            return Decimal("0")
        return await self.subscription_service().usage_service.get(subscription, feature)

    async def get_remaining_usage(self, feature: str) -> Optional[Decimal]:
        subscription = await self.active_subscription()
        if not subscription:
            return None
        return await self.subscription_service().usage_service.get_remaining(
            subscription, feature
        )

    async def get_usage_percentage(self, feature: str) -> Decimal:
        subscription = await self.active_subscription()
        if not subscription:
            return Decimal("0")
        return await self.subscription_service().usage_service.get_percentage(
            subscription, feature
        )

    async def exceeds_limit(self, feature: str) -> bool:
        subscription = await self.active_subscription()
        if not subscription:
            return False
        return await self.subscription_service().usage_service.exceeds_limit(
            subscription, feature
        )

    async def within_limit(self, feature: str, proposed=0) -> bool:
        subscription = await self.active_subscription()
        if not subscription:
            return False
        return await self.subscription_service().usage_service.within_limit(
            subscription, feature, proposed
        )

    async def reset_usage(self, feature: Optional[str] = None) -> int:
        subscription = await self.active_subscription()
        if not subscription:
            return 0
        return await self.subscription_service().usage_service.reset(
            subscription, feature=feature
        )

    # Plan changes

    async def _require_active(self) -> Subscription:
        subscription = await self.active_subscription()
        if not subscription:
            raise NotFoundError(f"{self.subscriber_ref()} has no active subscription")
        return subscription

    async def switch_plan(
        self, plan: PlanRef, change_type: ChangeType = ChangeType.SWITCH, **options
    ) -> Subscription:
        subscription = await self._require_active()
        return await self.subscription_service().switch_to(
            subscription, plan, change_type=change_type, **options
        )

    async def upgrade_to(self, plan: PlanRef, **options) -> Subscription:
        return await self.switch_plan(plan, ChangeType.UPGRADE, **options)

    async def downgrade_to(self, plan: PlanRef, **options) -> Subscription:
        return await self.switch_plan(plan, ChangeType.DOWNGRADE, **options)

    async def cancel_subscription(self, immediately: bool = False) -> Optional[Subscription]:
        subscription = await self.active_subscription()
        if not subscription:
            return None
        return await self.subscription_service().cancel(
            subscription, immediately=immediately
        )

    async def resume_subscription(self) -> Optional[Subscription]:
        """
        Resume the most recently cancelled subscription, or withdraw a
        pending end-of-period cancellation of the active one.
        """
        service = self.subscription_service()
        cancelled = await service.subscription_repo.get_latest_cancelled_for_subscriber(
            self.subscriber_ref()
        )
        if cancelled:
            return await service.resume(cancelled)

        active = await self.active_subscription()
        if active and active.is_pending_cancellation():
            return await service.resume(active)
        return None
