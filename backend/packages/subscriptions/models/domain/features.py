"""
Feature values attached to plans.

A plan's feature map mixes numeric limits ("api_calls": 1000) with boolean
flags ("priority_support": true). JSON round-trips lose the distinction
between ``1`` and ``True`` in careless code, so raw values are classified
explicitly here instead of through a pydantic Union.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from common.core.exceptions import ValidationError


class NumericFeature(BaseModel):
    """A feature with a usage limit."""

    value: Decimal

    def limit(self) -> Decimal:
        return self.value

    def is_enabled(self) -> bool:
        return self.value > 0

    def raw(self) -> Union[int, float]:
        if self.value == self.value.to_integral_value():
            return int(self.value)
        return float(self.value)


class FlagFeature(BaseModel):
    """An on/off feature. Flags never carry a limit."""

    enabled: bool

    def limit(self) -> None:
        return None

    def is_enabled(self) -> bool:
        return self.enabled

    def raw(self) -> bool:
        return self.enabled


FeatureValue = Union[NumericFeature, FlagFeature]


def parse_feature_value(raw: Any) -> FeatureValue:
    """Classify a raw JSON value. ``bool`` is checked before numbers."""
    if isinstance(raw, bool):
        return FlagFeature(enabled=raw)
    if isinstance(raw, (int, float, Decimal)):
        value = Decimal(str(raw))
        if not value.is_finite():
            raise ValidationError(f"Feature limit must be a finite number: {raw!r}")
        if value < 0:
            raise ValidationError(f"Feature limit cannot be negative: {raw}")
        return NumericFeature(value=value)
    if isinstance(raw, str):
        try:
            value = Decimal(raw)
        except ArithmeticError:
            raise ValidationError(f"Unsupported feature value: {raw!r}")
        return parse_feature_value(value)
    raise ValidationError(f"Unsupported feature value: {raw!r}")


def validate_feature_map(features: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate a raw feature map and normalise it to JSON-safe values."""
    if not features:
        return {}
    return {
        str(key): parse_feature_value(value).raw() for key, value in features.items()
    }


def feature_limit_as_int(raw: Any) -> Optional[int]:
    """Integer limit of a raw feature value, None for flags and missing keys."""
    if raw is None:
        return None
    feature = parse_feature_value(raw)
    if isinstance(feature, NumericFeature):
        return int(feature.value)
    return None
