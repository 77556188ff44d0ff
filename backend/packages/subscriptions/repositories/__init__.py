"""Subscription repositories."""

from packages.subscriptions.repositories.plan_repository import PlanRepository
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.repositories.usage_repository import UsageRepository
from packages.subscriptions.repositories.history_repository import (
    SubscriptionHistoryRepository,
)

__all__ = [
    "PlanRepository",
    "SubscriptionRepository",
    "UsageRepository",
    "SubscriptionHistoryRepository",
]
