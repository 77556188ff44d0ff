"""Database models for subscriptions."""

from packages.subscriptions.models.database.plan import PlanEntity
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.database.usage import UsageEntity
from packages.subscriptions.models.database.history import SubscriptionHistoryEntity

__all__ = [
    "PlanEntity",
    "SubscriptionEntity",
    "UsageEntity",
    "SubscriptionHistoryEntity",
]
