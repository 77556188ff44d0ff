"""Domain models for subscriptions."""

from packages.subscriptions.models.domain.enums import (
    BillingPeriod,
    SubscriptionStatus,
    ChangeType,
    HistoryEventType,
)
from packages.subscriptions.models.domain.features import (
    FeatureValue,
    FlagFeature,
    NumericFeature,
    parse_feature_value,
)
from packages.subscriptions.models.domain.plan import (
    Plan,
    PlanCreateModel,
    PlanUpdateModel,
)
from packages.subscriptions.models.domain.subscriber import SubscriberRef
from packages.subscriptions.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
)
from packages.subscriptions.models.domain.usage import Usage, UsageSummary
from packages.subscriptions.models.domain.history import (
    SubscriptionHistory,
    SubscriptionHistoryCreateModel,
)

__all__ = [
    # Enums
    "BillingPeriod",
    "SubscriptionStatus",
    "ChangeType",
    "HistoryEventType",
    # Features
    "FeatureValue",
    "FlagFeature",
    "NumericFeature",
    "parse_feature_value",
    # Plan
    "Plan",
    "PlanCreateModel",
    "PlanUpdateModel",
    # Subscription
    "SubscriberRef",
    "Subscription",
    "SubscriptionCreateModel",
    # Usage
    "Usage",
    "UsageSummary",
    # History
    "SubscriptionHistory",
    "SubscriptionHistoryCreateModel",
]
