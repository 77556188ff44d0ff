"""
Service for the subscription lifecycle.

Each transition loads the aggregate, lets the domain model apply the change
(it raises InvalidStateError on misuse), then persists it together with any
history row in one transaction. Events are queued with ``after_commit`` so
they are only published for transitions that actually committed.
"""

from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Any, Dict, List, Optional, Union

from common.core.config import settings
from common.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from common.core.otel_exporter import get_logger, trace_span
from common.core.time_utils import ensure_utc, utc_now
from common.db.context import after_commit
from common.db.scoped import transaction
from packages.subscriptions.models.domain.enums import ChangeType, HistoryEventType
from packages.subscriptions.models.domain.events import (
    PlanChanged,
    SubscriptionCancelled,
    SubscriptionCreated,
    SubscriptionExpired,
    SubscriptionRenewed,
    SubscriptionResumed,
    SubscriptionSuspended,
)
from packages.subscriptions.models.domain.history import (
    SubscriptionHistory,
    SubscriptionHistoryCreateModel,
)
from packages.subscriptions.models.domain.plan import Plan
from packages.subscriptions.models.domain.subscriber import SubscriberRef
from packages.subscriptions.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
)
from packages.subscriptions.providers.events.factory import get_event_sink
from packages.subscriptions.providers.events.interface import SubscriptionEventSink
from packages.subscriptions.repositories.history_repository import (
    SubscriptionHistoryRepository,
)
from packages.subscriptions.repositories.plan_repository import PlanRepository
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.proration_service import ProrationService
from packages.subscriptions.services.usage_service import UsageService

logger = get_logger(__name__)

PlanRef = Union[Plan, str, int]


class SubscriptionService:
    """Service for subscription lifecycle management."""

    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        plan_repo: Optional[PlanRepository] = None,
        history_repo: Optional[SubscriptionHistoryRepository] = None,
        usage_service: Optional[UsageService] = None,
        proration_service: Optional[ProrationService] = None,
        event_sink: Optional[SubscriptionEventSink] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.plan_repo = plan_repo or PlanRepository()
        self.history_repo = history_repo or SubscriptionHistoryRepository()
        self.event_sink = event_sink or get_event_sink()
        self.usage_service = usage_service or UsageService(event_sink=self.event_sink)
        self.proration = proration_service or ProrationService()

    async def _publish(self, event) -> None:
        await after_commit(partial(self.event_sink.publish, event))

    async def resolve_plan(self, plan: PlanRef) -> Plan:
        """Accept a Plan, a slug or an id."""
        if isinstance(plan, Plan):
            return plan
        if isinstance(plan, int):
            found = await self.plan_repo.get(plan)
        else:
            found = await self.plan_repo.get_by_slug(plan)
        if not found:
            raise NotFoundError(f"Plan {plan} not found")
        return found

    async def _load(self, subscription: Union[Subscription, int]) -> Subscription:
        subscription_id = (
            subscription.id if isinstance(subscription, Subscription) else subscription
        )
        found = await self.subscription_repo.get(subscription_id)
        if not found:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        return found

    async def _plan_of(self, subscription: Subscription) -> Plan:
        plan = await self.plan_repo.get(subscription.plan_id)
        if not plan:
            raise NotFoundError(
                f"Plan {subscription.plan_id} of subscription {subscription.id} not found"
            )
        return plan

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @trace_span
    async def get(self, subscription_id: int) -> Subscription:
        return await self._load(subscription_id)

    @trace_span
    async def get_active_for(
        self, subscriber: SubscriberRef, now: Optional[datetime] = None
    ) -> Optional[Subscription]:
        """Current subscription of ``subscriber``, or None when there is none."""
        return await self.subscription_repo.get_active_for_subscriber(
            subscriber, now or utc_now()
        )

    @trace_span
    async def list_for(self, subscriber: SubscriberRef) -> List[Subscription]:
        return await self.subscription_repo.get_for_subscriber(subscriber)

    @trace_span
    async def get_history(self, subscription_id: int) -> List[SubscriptionHistory]:
        await self._load(subscription_id)
        return await self.history_repo.list_for_subscription(subscription_id)

    @trace_span
    async def list_expiring_soon(
        self, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[Subscription]:
        days = settings.renewal_notify_before_days if days is None else days
        return await self.subscription_repo.list_expiring_soon(now or utc_now(), days)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @trace_span
    async def create(
        self,
        subscriber: SubscriberRef,
        plan: PlanRef,
        with_trial: bool = True,
        trial_days: Optional[int] = None,
        starts_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Subscribe ``subscriber`` to ``plan``.

        A trial is applied only when trials are enabled, the plan has a trial
        and the caller asked for one. ``trial_days`` overrides the plan's
        trial length; it never grants a trial on a plan without one.
        """
        now = now or utc_now()
        plan = await self.resolve_plan(plan)
        if not plan.is_active:
            raise ValidationError(f"Plan {plan.slug} is not available for new subscriptions")
        if trial_days is not None and trial_days < 0:
            raise ValidationError("trial_days cannot be negative")

        effective_trial_days = 0
        if with_trial and settings.trial_enabled and plan.has_trial():
            effective_trial_days = (
                trial_days if trial_days is not None else plan.trial_period_days
            )

        create_model = SubscriptionCreateModel.from_plan(
            subscriber,
            plan,
            starts_at=ensure_utc(starts_at) if starts_at else now,
            trial_days=effective_trial_days,
            metadata=metadata,
            now=now,
        )

        async with transaction():
            subscription = await self.subscription_repo.create(create_model)
            await self.history_repo.append(
                SubscriptionHistoryCreateModel(
                    subscription_id=subscription.id,
                    to_plan_id=plan.id,
                    event_type=HistoryEventType.CREATED,
                )
            )
            await self._publish(
                SubscriptionCreated.for_subscription(
                    subscription,
                    plan_id=plan.id,
                    status=subscription.status.value,
                    ends_at=subscription.ends_at,
                    trial_ends_at=subscription.trial_ends_at,
                )
            )

        logger.info(
            f"Created subscription {subscription.id} for {subscriber} on plan {plan.slug}",
            extra={
                "subscription_id": subscription.id,
                "plan_id": plan.id,
                "status": subscription.status.value,
            },
        )
        return subscription

    @trace_span
    async def cancel(
        self,
        subscription: Union[Subscription, int],
        immediately: bool = False,
        now: Optional[datetime] = None,
    ) -> Subscription:
        now = now or utc_now()
        async with transaction():
            current = await self._load(subscription)
            current.cancel(immediately=immediately, now=now)
            current = await self.subscription_repo.save(current)
            await self.history_repo.append(
                SubscriptionHistoryCreateModel(
                    subscription_id=current.id,
                    from_plan_id=current.plan_id,
                    event_type=HistoryEventType.CANCELLED,
                    history_metadata={"immediately": immediately},
                )
            )
            await self._publish(
                SubscriptionCancelled.for_subscription(
                    current, immediately=immediately, ends_at=current.ends_at
                )
            )

        logger.info(
            f"Cancelled subscription {current.id} ({'immediately' if immediately else 'at period end'})",
            extra={"subscription_id": current.id, "immediately": immediately},
        )
        return current

    @trace_span
    async def suspend(
        self,
        subscription: Union[Subscription, int],
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        now = now or utc_now()
        async with transaction():
            current = await self._load(subscription)
            current.suspend(reason=reason, now=now)
            current = await self.subscription_repo.save(current)
            await self._publish(
                SubscriptionSuspended.for_subscription(current, reason=reason)
            )

        logger.info(
            f"Suspended subscription {current.id}",
            extra={"subscription_id": current.id, "reason": reason},
        )
        return current

    @trace_span
    async def resume(
        self, subscription: Union[Subscription, int], now: Optional[datetime] = None
    ) -> Subscription:
        now = now or utc_now()
        async with transaction():
            current = await self._load(subscription)
            current.resume(await self._plan_of(current), now=now)
            current = await self.subscription_repo.save(current)
            await self._publish(
                SubscriptionResumed.for_subscription(current, ends_at=current.ends_at)
            )

        logger.info(f"Resumed subscription {current.id}", extra={"subscription_id": current.id})
        return current

    @trace_span
    async def renew(
        self, subscription: Union[Subscription, int], now: Optional[datetime] = None
    ) -> Subscription:
        """Start the next term. Usage counters are reset when configured."""
        now = now or utc_now()
        async with transaction():
            current = await self._load(subscription)
            previous_end = current.renew(await self._plan_of(current), now=now)
            current = await self.subscription_repo.save(current)
            if settings.usage_reset_on_renewal:
                await self.usage_service.reset(current, now=now)
            await self._publish(
                SubscriptionRenewed.for_subscription(
                    current, previous_ends_at=previous_end, ends_at=current.ends_at
                )
            )

        logger.info(
            f"Renewed subscription {current.id} until {current.ends_at}",
            extra={
                "subscription_id": current.id,
                "previous_ends_at": previous_end.isoformat() if previous_end else None,
            },
        )
        return current

    @trace_span
    async def expire(
        self, subscription: Union[Subscription, int], now: Optional[datetime] = None
    ) -> Subscription:
        now = now or utc_now()
        async with transaction():
            current = await self._load(subscription)
            plan = await self.plan_repo.get(current.plan_id)
            current.expire(plan, now=now, grace_enabled=settings.grace_period_enabled)
            current = await self.subscription_repo.save(current)
            await self._publish(
                SubscriptionExpired.for_subscription(
                    current, ended_at=current.ends_at, grace_ends_at=current.grace_ends_at
                )
            )

        logger.info(f"Expired subscription {current.id}", extra={"subscription_id": current.id})
        return current

    @trace_span
    async def switch_to(
        self,
        subscription: Union[Subscription, int],
        new_plan: PlanRef,
        change_type: ChangeType = ChangeType.SWITCH,
        prorate: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Move the subscription to ``new_plan`` keeping its current term.

        Plan/price/snapshot update, usage limit re-seeding and the history
        row commit together or not at all.
        """
        now = now or utc_now()
        new_plan = await self.resolve_plan(new_plan)
        if not new_plan.is_active:
            raise ValidationError(f"Plan {new_plan.slug} is not available")

        async with transaction():
            current = await self._load(subscription)
            if current.plan_id == new_plan.id:
                raise ValidationError(
                    f"Subscription {current.id} is already on plan {new_plan.slug}"
                )
            if not current.status.is_active():
                raise InvalidStateError(
                    f"Cannot change plan of subscription {current.id} with status {current.status.value}"
                )

            old_plan = await self._plan_of(current)
            previous_price = current.price

            proration_amount = Decimal("0")
            should_prorate = self.proration.enabled if prorate is None else prorate
            if should_prorate and self.proration.should_prorate(old_plan, new_plan):
                proration_amount = self.proration.calculate(current, new_plan, now)

            current.apply_plan(new_plan)
            current = await self.subscription_repo.save(current)
            await self.usage_service.sync_limits(current)
            await self.history_repo.append(
                SubscriptionHistoryCreateModel(
                    subscription_id=current.id,
                    from_plan_id=old_plan.id,
                    to_plan_id=new_plan.id,
                    event_type=HistoryEventType.from_change_type(change_type),
                    proration_amount=proration_amount,
                )
            )
            await self._publish(
                PlanChanged.for_subscription(
                    current,
                    from_plan_id=old_plan.id,
                    to_plan_id=new_plan.id,
                    change_type=change_type,
                    proration_amount=proration_amount,
                    previous_price=previous_price,
                    price=current.price,
                )
            )

        logger.info(
            f"Changed plan of subscription {current.id} from {old_plan.slug} to {new_plan.slug}",
            extra={
                "subscription_id": current.id,
                "change_type": change_type.value,
                "proration_amount": str(proration_amount),
            },
        )
        return current

    async def upgrade_to(
        self,
        subscription: Union[Subscription, int],
        new_plan: PlanRef,
        prorate: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        return await self.switch_to(
            subscription, new_plan, ChangeType.UPGRADE, prorate=prorate, now=now
        )

    async def downgrade_to(
        self,
        subscription: Union[Subscription, int],
        new_plan: PlanRef,
        prorate: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        return await self.switch_to(
            subscription, new_plan, ChangeType.DOWNGRADE, prorate=prorate, now=now
        )
