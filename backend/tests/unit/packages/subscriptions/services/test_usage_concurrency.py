"""
Concurrent usage increments against a file-backed SQLite database.

The shared fixtures run every session on one connection, which cannot
interleave writers. Here each increment gets its own pooled connection so
the atomic ``used = used + :amount`` update is exercised for real.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.db.base import Base
from packages.subscriptions.models.domain.enums import BillingPeriod
from packages.subscriptions.models.domain.events import SubscriptionEventType
from packages.subscriptions.models.domain.plan import PlanCreateModel
from packages.subscriptions.repositories.plan_repository import PlanRepository
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.usage_service import UsageService

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
WRITERS = 20


def _configure_sqlite(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def file_sessions(tmp_path, monkeypatch, patch_lazy_sessions):
    """Point the scoped session factories at a fresh on-disk database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'usage.db'}",
        connect_args={"timeout": 30},
    )
    event.listen(engine.sync_engine, "connect", _configure_sqlite)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocalReadonly", factory)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def metered_subscription(file_sessions, subscriber, recorded_events):
    plan = await PlanRepository().create(
        PlanCreateModel(
            slug="metered",
            name="Metered",
            price=Decimal("5.00"),
            billing_period=BillingPeriod.MONTHLY,
            features={"api_calls": 10},
        )
    )
    subscription = await SubscriptionService().create(
        subscriber, plan, with_trial=False, now=START
    )
    recorded_events.clear()
    return subscription


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(metered_subscription, recorded_events):
    usage_service = UsageService()
    # materialise the counter so the writers only race on the update
    await usage_service.get_usage(metered_subscription, "api_calls")

    await asyncio.gather(
        *(
            usage_service.increment(metered_subscription, "api_calls")
            for _ in range(WRITERS)
        )
    )

    assert await usage_service.get(metered_subscription, "api_calls") == Decimal(WRITERS)

    recorded = [
        e for e in recorded_events if e.event_type == SubscriptionEventType.USAGE_RECORDED
    ]
    exceeded = [
        e
        for e in recorded_events
        if e.event_type == SubscriptionEventType.USAGE_LIMIT_EXCEEDED
    ]
    assert len(recorded) == WRITERS
    assert len(exceeded) == 1
    assert exceeded[0].limit == Decimal("10")
