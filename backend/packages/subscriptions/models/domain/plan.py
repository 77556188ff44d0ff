"""
Domain models for the plan catalog.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from common.core.time_utils import UTCDateTime
from packages.subscriptions.models.domain.enums import BillingPeriod
from packages.subscriptions.models.domain.features import (
    FeatureValue,
    feature_limit_as_int,
    parse_feature_value,
    validate_feature_map,
)


class Plan(BaseModel):
    """
    Catalog entry. Read-only from the engine's point of view.

    Subscriptions copy price, billing period and features at the moment they
    are created or switched, so edits here never rewrite existing billing.
    """

    id: int
    slug: str
    name: str
    description: Optional[str] = None

    price: Decimal = Decimal("0")
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    billing_interval: int = 1

    trial_period_days: int = 0
    grace_period_days: int = 0

    features: Dict[str, Any] = Field(default_factory=dict)
    plan_metadata: Dict[str, Any] = Field(default_factory=dict)

    is_active: bool = True
    sort_order: int = 0

    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True

    @field_validator("features", "plan_metadata", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or {}

    def has_feature(self, feature: str) -> bool:
        return feature in self.features

    def get_feature(self, feature: str) -> Optional[FeatureValue]:
        if feature not in self.features:
            return None
        return parse_feature_value(self.features[feature])

    def get_feature_value(self, feature: str, default: Any = None) -> Any:
        return self.features.get(feature, default)

    def get_feature_limit(self, feature: str) -> Optional[int]:
        """Integer limit for numeric features; None for flags or unknown keys."""
        return feature_limit_as_int(self.features.get(feature))

    def is_feature_enabled(self, feature: str) -> bool:
        value = self.get_feature(feature)
        return value.is_enabled() if value else False

    def is_free(self) -> bool:
        return self.price == 0

    def has_trial(self) -> bool:
        return self.trial_period_days > 0

    def is_lifetime(self) -> bool:
        return self.billing_period.is_lifetime()

    def calculate_next_billing_date(self, from_: datetime) -> Optional[datetime]:
        """End of one billing term starting at ``from_`` (None for lifetime)."""
        return self.billing_period.add_to(from_, self.billing_interval)


class PlanCreateModel(BaseModel):
    """Model for creating a plan."""

    slug: str = Field(min_length=1, max_length=255)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    billing_interval: int = Field(default=1, ge=1)
    trial_period_days: int = Field(default=0, ge=0)
    grace_period_days: int = Field(default=0, ge=0)
    features: Dict[str, Any] = Field(default_factory=dict)
    plan_metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    sort_order: int = 0

    class Config:
        use_enum_values = True

    @field_validator("features")
    @classmethod
    def _validate_features(cls, value):
        return validate_feature_map(value)


class PlanUpdateModel(BaseModel):
    """Model for updating a plan. Only explicitly set fields are written."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    billing_period: Optional[BillingPeriod] = None
    billing_interval: Optional[int] = Field(default=None, ge=1)
    trial_period_days: Optional[int] = Field(default=None, ge=0)
    grace_period_days: Optional[int] = Field(default=None, ge=0)
    features: Optional[Dict[str, Any]] = None
    plan_metadata: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    class Config:
        use_enum_values = True

    @field_validator("features")
    @classmethod
    def _validate_features(cls, value):
        if value is None:
            return value
        return validate_feature_map(value)
