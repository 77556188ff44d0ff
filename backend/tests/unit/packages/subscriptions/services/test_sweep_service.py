"""
Unit tests for the renewal, expiry and usage-reset sweeps.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from common.providers.locking.memory_lock import MemoryLock
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.sweep_service import (
    ExpirySweeper,
    RenewalSweeper,
    UsageResetSweeper,
    lock_key,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 2, 1, tzinfo=timezone.utc)


async def make_subscriptions(subscriber, plan, count):
    service = SubscriptionService()
    created = []
    for i in range(count):
        owner = subscriber.model_copy(update={"id": f"{subscriber.id}-{i}"})
        created.append(await service.create(owner, plan, with_trial=False, now=START))
    return created


@pytest.mark.asyncio
class TestRenewalSweeper:
    async def test_renews_due_subscriptions(self, subscriber, basic_plan):
        due = await make_subscriptions(subscriber, basic_plan, 2)
        sweeper = RenewalSweeper(lock_provider=MemoryLock())

        report = await sweeper.run(now=END - timedelta(hours=1))

        assert sorted(report.succeeded) == sorted(s.id for s in due)
        assert report.processed == 2
        assert not report.has_failures
        renewed = await sweeper.subscription_service.get(due[0].id)
        assert renewed.ends_at == datetime(2024, 3, 1, tzinfo=timezone.utc)

    async def test_outside_lookahead_is_ignored(self, subscriber, basic_plan):
        await make_subscriptions(subscriber, basic_plan, 1)
        report = await RenewalSweeper(lock_provider=MemoryLock()).run(
            now=END - timedelta(days=2)
        )
        assert report.candidates == []

    async def test_pending_cancellation_is_not_renewed(self, subscriber, basic_plan):
        (subscription,) = await make_subscriptions(subscriber, basic_plan, 1)
        await SubscriptionService().cancel(subscription, now=START + timedelta(days=3))

        report = await RenewalSweeper(lock_provider=MemoryLock()).run(
            now=END - timedelta(hours=1)
        )
        assert report.candidates == []

    async def test_dry_run_changes_nothing(self, subscriber, basic_plan, recorded_events):
        (subscription,) = await make_subscriptions(subscriber, basic_plan, 1)
        recorded_events.clear()
        sweeper = RenewalSweeper(lock_provider=MemoryLock())

        report = await sweeper.run(now=END - timedelta(hours=1), dry_run=True)

        assert report.dry_run
        assert report.candidates == [subscription.id]
        assert report.succeeded == []
        assert (await sweeper.subscription_service.get(subscription.id)).ends_at == END
        assert recorded_events == []

    async def test_one_failure_does_not_stop_the_batch(self, subscriber, basic_plan):
        first, second, third = await make_subscriptions(subscriber, basic_plan, 3)
        service = SubscriptionService()
        real_renew = service.renew

        async def flaky_renew(subscription_id, now=None):
            if subscription_id == second.id:
                raise RuntimeError("boom")
            return await real_renew(subscription_id, now=now)

        with patch.object(service, "renew", side_effect=flaky_renew):
            report = await RenewalSweeper(
                subscription_service=service, lock_provider=MemoryLock()
            ).run(now=END - timedelta(hours=1))

        assert sorted(report.succeeded) == sorted([first.id, third.id])
        assert [f.subscription_id for f in report.failed] == [second.id]
        assert report.failed[0].error == "boom"
        assert (await service.get(second.id)).ends_at == END

    async def test_locked_subscription_is_skipped(self, subscriber, basic_plan):
        first, second = await make_subscriptions(subscriber, basic_plan, 2)
        lock = MemoryLock()
        await lock.acquire_lock(lock_key(first.id), 60)

        report = await RenewalSweeper(lock_provider=lock).run(now=END - timedelta(hours=1))

        assert report.skipped == [first.id]
        assert report.succeeded == [second.id]
        assert not await lock.is_locked(lock_key(second.id))

    async def test_lock_released_after_failure(self, subscriber, basic_plan):
        (subscription,) = await make_subscriptions(subscriber, basic_plan, 1)
        service = SubscriptionService()
        lock = MemoryLock()
        with patch.object(service, "renew", AsyncMock(side_effect=RuntimeError("boom"))):
            report = await RenewalSweeper(
                subscription_service=service, lock_provider=lock
            ).run(now=END - timedelta(hours=1))

        assert report.has_failures
        assert not await lock.is_locked(lock_key(subscription.id))

    async def test_uses_configured_lock_provider(
        self, subscriber, basic_plan, mock_lock_provider
    ):
        (subscription,) = await make_subscriptions(subscriber, basic_plan, 1)
        with patch(
            "packages.subscriptions.services.sweep_service.get_lock_provider",
            return_value=mock_lock_provider,
        ):
            report = await RenewalSweeper().run(now=END - timedelta(hours=1))

        assert report.succeeded == [subscription.id]
        mock_lock_provider.acquire_lock.assert_awaited_once_with(
            lock_key(subscription.id), 60
        )
        mock_lock_provider.release_lock.assert_awaited_once_with(
            lock_key(subscription.id), "test-lock-token"
        )


@pytest.mark.asyncio
class TestExpirySweeper:
    async def test_expires_ended_subscriptions(self, subscriber, basic_plan, recorded_events):
        active, cancelled = await make_subscriptions(subscriber, basic_plan, 2)
        await SubscriptionService().cancel(cancelled, now=START + timedelta(days=1))
        recorded_events.clear()
        sweeper = ExpirySweeper(lock_provider=MemoryLock())

        report = await sweeper.run(now=END + timedelta(hours=1))

        assert sorted(report.succeeded) == sorted([active.id, cancelled.id])
        for subscription_id in report.succeeded:
            expired = await sweeper.subscription_service.get(subscription_id)
            assert expired.status == SubscriptionStatus.EXPIRED
            assert expired.grace_ends_at == END + timedelta(days=3)
        assert len(recorded_events) == 2

    async def test_nothing_to_expire_before_end(self, subscriber, basic_plan):
        await make_subscriptions(subscriber, basic_plan, 1)
        report = await ExpirySweeper(lock_provider=MemoryLock()).run(now=END - timedelta(days=1))
        assert report.candidates == []

    async def test_lifetime_never_expires(self, subscriber, lifetime_plan):
        await SubscriptionService().create(subscriber, lifetime_plan, now=START)
        report = await ExpirySweeper(lock_provider=MemoryLock()).run(
            now=datetime(2100, 1, 1, tzinfo=timezone.utc)
        )
        assert report.candidates == []

    async def test_dry_run(self, subscriber, basic_plan):
        (subscription,) = await make_subscriptions(subscriber, basic_plan, 1)
        sweeper = ExpirySweeper(lock_provider=MemoryLock())

        report = await sweeper.run(now=END + timedelta(hours=1), dry_run=True)

        assert report.candidates == [subscription.id]
        current = await sweeper.subscription_service.get(subscription.id)
        assert current.status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
class TestUsageResetSweeper:
    async def test_resets_one_subscription(self, subscriber, basic_plan):
        first, second = await make_subscriptions(subscriber, basic_plan, 2)
        sweeper = UsageResetSweeper(lock_provider=MemoryLock())
        await sweeper.usage_service.increment(first, "api_calls", 10)
        await sweeper.usage_service.increment(second, "api_calls", 20)

        report = await sweeper.run(subscription_id=first.id, now=START + timedelta(days=1))

        assert report.succeeded == [first.id]
        assert await sweeper.usage_service.get(first, "api_calls") == Decimal("0")
        assert await sweeper.usage_service.get(second, "api_calls") == Decimal("20")

    async def test_resets_every_active_subscription(self, subscriber, basic_plan):
        subscriptions = await make_subscriptions(subscriber, basic_plan, 2)
        sweeper = UsageResetSweeper(lock_provider=MemoryLock())
        for subscription in subscriptions:
            await sweeper.usage_service.increment(subscription, "api_calls", 5)

        report = await sweeper.run(feature="api_calls", now=START + timedelta(days=1))

        assert sorted(report.succeeded) == sorted(s.id for s in subscriptions)
        for subscription in subscriptions:
            assert await sweeper.usage_service.get(subscription, "api_calls") == Decimal("0")
