from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class LockProviderType(str, Enum):
    """Lock provider types."""

    MEMORY = "memory"
    REDIS = "redis"


class EventSinkType(str, Enum):
    """Where domain events are delivered."""

    LOGGING = "logging"
    DISPATCHER = "dispatcher"


class ProrationDayBasis(str, Enum):
    """How the new plan's daily rate is derived during proration."""

    CALENDAR = "calendar"  # true length of the plan period from the current start
    NOMINAL = "nominal"  # BillingPeriod.days() (30 for monthly, 365 for yearly)
