from datetime import datetime, timezone
from decimal import Decimal

import pytest

from common.core.exceptions import NotFoundError, ValidationError
from packages.subscriptions.models.domain.enums import BillingPeriod
from packages.subscriptions.models.domain.plan import PlanCreateModel, PlanUpdateModel
from packages.subscriptions.services.plan_service import PlanService
from packages.subscriptions.services.subscription_service import SubscriptionService


@pytest.mark.asyncio
class TestPlanService:
    async def test_create_and_lookup(self):
        service = PlanService()
        plan = await service.create(
            PlanCreateModel(
                slug="team",
                name="Team",
                price=Decimal("49.00"),
                billing_period=BillingPeriod.QUARTERLY,
                features={"seats": 10, "sso": True},
                plan_metadata={"external_price_id": "price_123"},
            )
        )

        assert plan.id is not None
        assert plan.billing_period == BillingPeriod.QUARTERLY
        assert plan.features == {"seats": 10, "sso": True}
        assert plan.plan_metadata == {"external_price_id": "price_123"}
        assert plan.is_active
        assert (await service.get_by_slug("team")).id == plan.id
        assert (await service.get(plan.id)).slug == "team"

    async def test_duplicate_slug_rejected(self, basic_plan):
        with pytest.raises(ValidationError):
            await PlanService().create(PlanCreateModel(slug="basic", name="Basic again"))

    async def test_missing_plan(self):
        with pytest.raises(NotFoundError):
            await PlanService().get_by_slug("nope")
        with pytest.raises(NotFoundError):
            await PlanService().get(12345)

    async def test_list_active_in_catalog_order(self, basic_plan, pro_plan, lifetime_plan):
        service = PlanService()
        await service.deactivate(lifetime_plan.id)

        plans = await service.list_active()
        assert [p.slug for p in plans] == ["basic", "pro"]

    async def test_update_only_touches_given_fields(self, basic_plan):
        updated = await PlanService().update(
            basic_plan.id, PlanUpdateModel(price=Decimal("12.00"))
        )
        assert updated.price == Decimal("12.00")
        assert updated.name == "Basic"
        assert updated.features == basic_plan.features

    async def test_plan_changes_do_not_affect_existing_subscriptions(
        self, subscriber, basic_plan
    ):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        subscription = await SubscriptionService().create(
            subscriber, basic_plan, with_trial=False, now=now
        )

        service = PlanService()
        await service.update(
            basic_plan.id,
            PlanUpdateModel(price=Decimal("99.00"), features={"api_calls": 5}),
        )
        await service.deactivate(basic_plan.id)

        reloaded = await SubscriptionService().get(subscription.id)
        assert reloaded.price == Decimal("10.00")
        assert reloaded.get_feature_limit("api_calls") == 100
        assert reloaded.is_active(now)
