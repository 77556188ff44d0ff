"""
Subscription enums - billing periods, lifecycle states and audit event types.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from common.core.time_utils import add_months, add_years


class BillingPeriod(str, Enum):
    """
    Recurring interval of a plan.

    ``days()`` is a nominal length used only for proration rates. Scheduling
    goes through ``add_to`` which does calendar arithmetic, so monthly
    renewals stay on the same day of the month instead of drifting.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"  # never renews, ends_at stays null

    def days(self) -> int:
        """Nominal interval length in days (0 for lifetime)."""
        nominal = {
            BillingPeriod.DAILY: 1,
            BillingPeriod.WEEKLY: 7,
            BillingPeriod.MONTHLY: 30,
            BillingPeriod.QUARTERLY: 90,
            BillingPeriod.YEARLY: 365,
            BillingPeriod.LIFETIME: 0,
        }
        return nominal[self]

    def label(self) -> str:
        return self.value.capitalize()

    def is_lifetime(self) -> bool:
        return self == BillingPeriod.LIFETIME

    def add_to(self, value: datetime, count: int = 1) -> Optional[datetime]:
        """
        Advance ``value`` by ``count`` periods.

        Returns None for LIFETIME: a lifetime term has no end date.
        """
        if self == BillingPeriod.DAILY:
            return value + timedelta(days=count)
        if self == BillingPeriod.WEEKLY:
            return value + timedelta(weeks=count)
        if self == BillingPeriod.MONTHLY:
            return add_months(value, count)
        if self == BillingPeriod.QUARTERLY:
            return add_months(value, count * 3)
        if self == BillingPeriod.YEARLY:
            return add_years(value, count)
        return None


class SubscriptionStatus(str, Enum):
    """
    Subscription lifecycle states.

    Flow: on_trial/active -> cancelled/suspended -> (resume) active
          active/on_trial/cancelled -> expired (sweep only)
    """

    ACTIVE = "active"
    ON_TRIAL = "on_trial"
    CANCELLED = "cancelled"  # soft (ends at ends_at) or immediate (ends_at pulled to now)
    SUSPENDED = "suspended"
    EXPIRED = "expired"  # reached by the expiry sweep, not resumable
    INCOMPLETE = "incomplete"

    def is_active(self) -> bool:
        """Statuses that can grant access. Dates still have to be checked."""
        return self in (SubscriptionStatus.ACTIVE, SubscriptionStatus.ON_TRIAL)

    def can_access(self) -> bool:
        return self.is_active()

    def is_resumable(self) -> bool:
        return self in (SubscriptionStatus.CANCELLED, SubscriptionStatus.SUSPENDED)

    def label(self) -> str:
        return self.value.replace("_", " ").title()


class ChangeType(str, Enum):
    """Caller's stated intent for a plan change."""

    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    SWITCH = "switch"


class HistoryEventType(str, Enum):
    """Rows of the append-only subscription history."""

    CREATED = "created"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    SWITCH = "switch"
    CANCELLED = "cancelled"

    @classmethod
    def from_change_type(cls, change_type: ChangeType) -> "HistoryEventType":
        return cls(change_type.value)
