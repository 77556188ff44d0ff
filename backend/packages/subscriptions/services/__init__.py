"""Subscription services."""

from packages.subscriptions.services.plan_service import PlanService
from packages.subscriptions.services.proration_service import ProrationService
from packages.subscriptions.services.usage_service import UsageService
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.sweep_service import (
    ExpirySweeper,
    RenewalSweeper,
    SweepReport,
    UsageResetSweeper,
)

__all__ = [
    "PlanService",
    "ProrationService",
    "UsageService",
    "SubscriptionService",
    "ExpirySweeper",
    "RenewalSweeper",
    "SweepReport",
    "UsageResetSweeper",
]
