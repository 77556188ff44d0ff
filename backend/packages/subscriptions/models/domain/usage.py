"""
Domain models for feature usage counters.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from common.core.time_utils import UTCDateTime

HUNDRED = Decimal("100")


class Usage(BaseModel):
    """
    Per (subscription, feature) counter.

    ``limit`` None means unlimited. ``used`` never goes below zero.
    """

    id: int
    subscription_id: int
    feature: str

    used: Decimal = Decimal("0")
    limit: Optional[Decimal] = None

    valid_until: Optional[UTCDateTime] = None
    reset_at: Optional[UTCDateTime] = None

    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True

    def is_unlimited(self) -> bool:
        return self.limit is None

    def get_remaining(self) -> Optional[Decimal]:
        """None if unlimited, else max(0, limit - used)."""
        if self.limit is None:
            return None
        return max(Decimal("0"), self.limit - self.used)

    def get_percentage(self) -> Decimal:
        """Share of the limit consumed, clamped to 100. 0 when unlimited."""
        if not self.limit:
            return Decimal("0")
        return min(HUNDRED, self.used / self.limit * HUNDRED)

    def exceeds_limit(self) -> bool:
        if self.limit is None:
            return False
        return self.used >= self.limit

    def within_limit(self, proposed: Decimal = Decimal("0")) -> bool:
        if self.limit is None:
            return True
        return self.used + proposed <= self.limit


class UsageSummary(BaseModel):
    """Read model combining a counter with its derived values."""

    feature: str
    used: Decimal
    limit: Optional[Decimal] = None
    remaining: Optional[Decimal] = None
    percentage: Decimal
    exceeded: bool
    valid_until: Optional[datetime] = None
    reset_at: Optional[datetime] = None

    @classmethod
    def from_usage(cls, usage: Usage) -> "UsageSummary":
        return cls(
            feature=usage.feature,
            used=usage.used,
            limit=usage.limit,
            remaining=usage.get_remaining(),
            percentage=usage.get_percentage(),
            exceeded=usage.exceeds_limit(),
            valid_until=usage.valid_until,
            reset_at=usage.reset_at,
        )
