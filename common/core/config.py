from enum import Enum
from typing import Optional, List, Dict
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "billing-engine"
    api_version: str = "1.0.0"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "billing"
    db_use_nullpool: bool = (
        False  # True for workers (sequential), False for API (concurrent)
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

    # Rate limiting (SlowAPI)
    rate_limit_enabled: bool = True
    rate_limit_default: List[str] = ["20/second", "600/minute"]

    # OpenTelemetry
    otel_service_name: str = "billing-engine"
    otel_service_version: str = "1.0.0"

    # Axiom (export disabled when no token is set)
    axiom_token: Optional[str] = None
    axiom_dataset: str = "billing-engine"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300
    # "<plan_id>:<billing_cycle>" -> Stripe price id
    stripe_price_ids: Dict[str, str] = {}

    # Billing engine
    reporting_currency: str = "USD"
    dunning_schedule_days: List[int] = [3, 7, 14, 21]
    dunning_max_attempts: int = 4
    dunning_scan_interval_seconds: int = 300
    subscription_lock_ttl_seconds: int = 30
    subscription_lock_acquire_timeout_seconds: float = 5.0
    churn_window_days: Optional[int] = None  # None = all-time cohort

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
