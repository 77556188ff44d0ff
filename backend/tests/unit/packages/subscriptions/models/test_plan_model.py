from datetime import datetime, timezone
from decimal import Decimal

import pytest

from common.core.exceptions import ValidationError
from packages.subscriptions.models.domain.enums import BillingPeriod
from packages.subscriptions.models.domain.plan import Plan, PlanCreateModel


def make_plan(**overrides) -> Plan:
    data = {
        "id": 1,
        "slug": "basic",
        "name": "Basic",
        "price": Decimal("10.00"),
        "billing_period": BillingPeriod.MONTHLY,
        "features": {"api_calls": 100, "sso": False, "exports": 0},
    }
    data.update(overrides)
    return Plan(**data)


class TestPlan:
    def test_feature_lookups(self):
        plan = make_plan()
        assert plan.has_feature("api_calls")
        assert not plan.has_feature("unknown")
        assert plan.get_feature_limit("api_calls") == 100
        assert plan.get_feature_limit("sso") is None
        assert plan.get_feature_limit("unknown") is None
        assert plan.get_feature_value("unknown", "n/a") == "n/a"

    def test_feature_enabled(self):
        plan = make_plan()
        assert plan.is_feature_enabled("api_calls")
        assert not plan.is_feature_enabled("sso")
        assert not plan.is_feature_enabled("exports")
        assert not plan.is_feature_enabled("unknown")

    def test_free_trial_lifetime(self):
        assert make_plan(price=Decimal("0")).is_free()
        assert make_plan(trial_period_days=7).has_trial()
        assert not make_plan().has_trial()
        assert make_plan(billing_period=BillingPeriod.LIFETIME).is_lifetime()

    def test_next_billing_date_uses_interval(self):
        start = datetime(2024, 1, 15, tzinfo=timezone.utc)
        plan = make_plan(billing_interval=3)
        assert plan.calculate_next_billing_date(start) == datetime(
            2024, 4, 15, tzinfo=timezone.utc
        )

    def test_lifetime_next_billing_date_is_none(self):
        plan = make_plan(billing_period=BillingPeriod.LIFETIME)
        assert plan.calculate_next_billing_date(datetime.now(timezone.utc)) is None

    def test_null_features_become_empty(self):
        assert make_plan(features=None).features == {}


class TestPlanCreateModel:
    def test_stores_enum_values(self):
        model = PlanCreateModel(slug="pro", name="Pro", billing_period=BillingPeriod.YEARLY)
        assert model.billing_period == "yearly"

    def test_rejects_negative_price(self):
        with pytest.raises(ValueError):
            PlanCreateModel(slug="pro", name="Pro", price=Decimal("-1"))

    def test_rejects_negative_feature_limit(self):
        with pytest.raises(ValidationError):
            PlanCreateModel(slug="pro", name="Pro", features={"api_calls": -5})
