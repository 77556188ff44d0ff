"""
Tests for transaction(), after_commit() and readonly().

These use the real session machinery against the test database; the
conftest patches the session factories.
"""

from decimal import Decimal

import pytest

from common.db.context import after_commit, in_transaction, is_readonly_forced, readonly
from common.db.scoped import transaction
from packages.subscriptions.models.domain.enums import BillingPeriod
from packages.subscriptions.models.domain.plan import PlanCreateModel
from packages.subscriptions.repositories.plan_repository import PlanRepository


def _plan(slug):
    return PlanCreateModel(
        slug=slug,
        name=slug.title(),
        price=Decimal("1.00"),
        billing_period=BillingPeriod.MONTHLY,
    )


class TestTransaction:
    async def test_commit_persists_all_writes(self):
        repo = PlanRepository()

        async with transaction():
            assert in_transaction()
            await repo.create(_plan("one"))
            await repo.create(_plan("two"))

        assert not in_transaction()
        assert {p.slug for p in await repo.list_active()} == {"one", "two"}

    async def test_rollback_discards_all_writes(self):
        repo = PlanRepository()

        with pytest.raises(RuntimeError):
            async with transaction():
                await repo.create(_plan("one"))
                raise RuntimeError("boom")

        assert await repo.get_by_slug("one") is None


class TestAfterCommit:
    async def test_runs_after_commit(self):
        calls = []

        async def callback():
            calls.append("callback")

        async with transaction():
            await after_commit(callback)
            calls.append("body")

        assert calls == ["body", "callback"]

    async def test_dropped_on_rollback(self):
        calls = []

        async def callback():
            calls.append("callback")

        with pytest.raises(ValueError):
            async with transaction():
                await after_commit(callback)
                raise ValueError("rollback")

        assert calls == []

    async def test_runs_immediately_outside_transaction(self):
        calls = []

        async def callback():
            calls.append("callback")

        await after_commit(callback)

        assert calls == ["callback"]

    async def test_callbacks_keep_registration_order(self):
        calls = []

        def make(name):
            async def callback():
                calls.append(name)

            return callback

        async with transaction():
            await after_commit(make("first"))
            await after_commit(make("second"))

        assert calls == ["first", "second"]


class TestReadonly:
    async def test_forces_readonly_for_call_chain(self):
        @readonly
        async def inner():
            return is_readonly_forced()

        assert await inner() is True
        assert is_readonly_forced() is False

    async def test_readonly_reads_see_committed_rows(self):
        repo = PlanRepository()
        await repo.create(_plan("catalog"))

        @readonly
        async def load():
            return await repo.get_by_slug("catalog")

        assert (await load()).slug == "catalog"
