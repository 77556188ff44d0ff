# Shared pytest configuration and fixtures for all test types
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from api.main import app
from common.db.base import Base
from common.providers.locking.factory import reset_lock_provider
from packages.subscriptions.models.database import (  # noqa: F401
    PlanEntity,
    SubscriptionEntity,
    SubscriptionHistoryEntity,
    UsageEntity,
)
from packages.subscriptions.models.domain.enums import BillingPeriod
from packages.subscriptions.models.domain.plan import PlanCreateModel
from packages.subscriptions.models.domain.subscriber import SubscriberRef
from packages.subscriptions.providers.events.dispatcher import EventDispatcher
from packages.subscriptions.providers.events.factory import set_event_sink
from packages.subscriptions.repositories.plan_repository import PlanRepository

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so transaction() commits
    release savepoints and rollbacks only undo the failed block.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest.fixture(autouse=True)
def recorded_events():
    """Install an EventDispatcher that records every published event."""
    events = []
    dispatcher = EventDispatcher()
    dispatcher.subscribe(None, events.append)
    set_event_sink(dispatcher)
    yield events
    set_event_sink(None)


@pytest.fixture(autouse=True)
def fresh_lock_provider():
    reset_lock_provider()
    yield
    reset_lock_provider()


@pytest_asyncio.fixture(scope="function")
async def client():
    """Create a test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def now():
    return datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def subscriber():
    return SubscriberRef(type="team", id="42")


@pytest_asyncio.fixture(scope="function")
async def basic_plan():
    """Monthly $10 plan with a numeric limit and a flag."""
    return await PlanRepository().create(
        PlanCreateModel(
            slug="basic",
            name="Basic",
            price=Decimal("10.00"),
            billing_period=BillingPeriod.MONTHLY,
            trial_period_days=14,
            grace_period_days=3,
            features={"api_calls": 100, "priority_support": False},
            sort_order=1,
        )
    )


@pytest_asyncio.fixture(scope="function")
async def pro_plan():
    return await PlanRepository().create(
        PlanCreateModel(
            slug="pro",
            name="Pro",
            price=Decimal("30.00"),
            billing_period=BillingPeriod.MONTHLY,
            features={"api_calls": 1000, "priority_support": True, "exports": 10},
            sort_order=2,
        )
    )


@pytest_asyncio.fixture(scope="function")
async def lifetime_plan():
    return await PlanRepository().create(
        PlanCreateModel(
            slug="lifetime",
            name="Lifetime",
            price=Decimal("199.00"),
            billing_period=BillingPeriod.LIFETIME,
            features={"api_calls": 5000},
            sort_order=3,
        )
    )
