from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import (
    Environment,
    EventSinkType,
    LockProviderType,
    ProrationDayBasis,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "subscriptions"
    api_version: str = "0.1.0"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "subscriptions"
    db_use_nullpool: bool = (
        False  # True for sweep jobs (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @property
    def redis_connection_url(self) -> str:
        """Construct Redis URL from components."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # OpenTelemetry
    otel_service_name: str = "subscriptions"
    otel_service_version: str = "0.1.0"
    otel_exporter_endpoint: Optional[str] = None  # e.g. https://collector/v1/traces
    otel_exporter_token: Optional[str] = None

    # Providers
    lock_provider: LockProviderType = LockProviderType.MEMORY
    event_sink: EventSinkType = EventSinkType.LOGGING

    # Proration
    proration_enabled: bool = True
    proration_rounding: int = 2  # Decimal places
    proration_day_basis: ProrationDayBasis = ProrationDayBasis.CALENDAR

    # Trial / grace
    trial_enabled: bool = True
    grace_period_enabled: bool = True

    # Usage tracking
    usage_reset_on_renewal: bool = True

    # Renewal sweeps
    renewal_lookahead_hours: int = 24
    renewal_notify_before_days: int = 7
    sweep_lock_ttl_seconds: int = 60

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return []


settings = Settings()
