"""
Periodic sweeps over many subscriptions.

Each subscription is handled on its own: own lock, own transaction (opened by
SubscriptionService), own error handling. One failing subscription is
recorded in the report and the sweep moves on.
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel, Field

from common.core.config import settings
from common.core.otel_exporter import get_logger, log_span_event, trace_span
from common.core.time_utils import utc_now
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.usage_service import UsageService

logger = get_logger(__name__)


class SweepFailure(BaseModel):
    subscription_id: int
    error: str


class SweepReport(BaseModel):
    """Outcome of one sweep run."""

    sweep: str
    dry_run: bool = False
    candidates: List[int] = Field(default_factory=list)
    succeeded: List[int] = Field(default_factory=list)
    skipped: List[int] = Field(default_factory=list)  # lock held elsewhere
    failed: List[SweepFailure] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


def lock_key(subscription_id: int) -> str:
    return f"subscription:{subscription_id}"


class _Sweeper:
    name = "sweep"

    def __init__(
        self,
        subscription_service: Optional[SubscriptionService] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        lock_provider: Optional[DistributedLockInterface] = None,
    ):
        self.subscription_service = subscription_service or SubscriptionService()
        self.subscription_repo = (
            subscription_repo or self.subscription_service.subscription_repo
        )
        self.lock_provider = lock_provider or get_lock_provider()

    async def _process(
        self,
        report: SweepReport,
        subscription: Subscription,
        action: Callable[[Subscription], Awaitable[object]],
    ) -> None:
        key = lock_key(subscription.id)
        lock_token = await self.lock_provider.acquire_lock(
            key, settings.sweep_lock_ttl_seconds
        )
        if not lock_token:
            logger.info(
                f"{self.name}: subscription {subscription.id} is locked, skipping",
                extra={"subscription_id": subscription.id},
            )
            report.skipped.append(subscription.id)
            return

        try:
            await action(subscription)
        except Exception as e:
            logger.exception(
                f"{self.name}: subscription {subscription.id} failed: {e}",
                extra={"subscription_id": subscription.id},
            )
            report.failed.append(
                SweepFailure(subscription_id=subscription.id, error=str(e))
            )
            return
        finally:
            await self.lock_provider.release_lock(key, lock_token)
        report.succeeded.append(subscription.id)

    def _finish(self, report: SweepReport) -> SweepReport:
        summary = {
            "candidates": len(report.candidates),
            "succeeded": len(report.succeeded),
            "skipped": len(report.skipped),
            "failed": len(report.failed),
            "dry_run": report.dry_run,
        }
        log_span_event(f"{self.name} finished", summary)
        return report


class RenewalSweeper(_Sweeper):
    """Renews active, non-cancelled subscriptions ending within the lookahead."""

    name = "renewal"

    @trace_span
    async def run(
        self,
        now: Optional[datetime] = None,
        dry_run: bool = False,
        lookahead: Optional[timedelta] = None,
    ) -> SweepReport:
        now = now or utc_now()
        lookahead = lookahead or timedelta(hours=settings.renewal_lookahead_hours)
        due = await self.subscription_repo.list_due_for_renewal(now, lookahead)

        report = SweepReport(
            sweep=self.name, dry_run=dry_run, candidates=[s.id for s in due]
        )
        if dry_run:
            for subscription in due:
                logger.info(
                    f"[dry-run] would renew subscription {subscription.id} ending {subscription.ends_at}",
                    extra={"subscription_id": subscription.id},
                )
            return self._finish(report)

        for subscription in due:
            await self._process(
                report,
                subscription,
                lambda s: self.subscription_service.renew(s.id, now=now),
            )
        return self._finish(report)


class ExpirySweeper(_Sweeper):
    """Expires active, on-trial and cancelled subscriptions past their end."""

    name = "expiry"

    @trace_span
    async def run(
        self, now: Optional[datetime] = None, dry_run: bool = False
    ) -> SweepReport:
        now = now or utc_now()
        expired = await self.subscription_repo.list_expired(now)

        report = SweepReport(
            sweep=self.name, dry_run=dry_run, candidates=[s.id for s in expired]
        )
        if dry_run:
            return self._finish(report)

        for subscription in expired:
            await self._process(
                report,
                subscription,
                lambda s: self.subscription_service.expire(s.id, now=now),
            )
        return self._finish(report)


class UsageResetSweeper(_Sweeper):
    """Resets usage counters of one subscription or of every active one."""

    name = "usage-reset"

    def __init__(self, usage_service: Optional[UsageService] = None, **kwargs):
        super().__init__(**kwargs)
        self.usage_service = usage_service or self.subscription_service.usage_service

    @trace_span
    async def run(
        self,
        subscription_id: Optional[int] = None,
        feature: Optional[str] = None,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> SweepReport:
        now = now or utc_now()
        if subscription_id is not None:
            targets = [await self.subscription_service.get(subscription_id)]
        else:
            targets = await self.subscription_repo.list_active(now)

        report = SweepReport(
            sweep=self.name, dry_run=dry_run, candidates=[s.id for s in targets]
        )
        if dry_run:
            return self._finish(report)

        for subscription in targets:
            await self._process(
                report,
                subscription,
                lambda s: self.usage_service.reset(s, feature=feature, now=now),
            )
        return self._finish(report)
