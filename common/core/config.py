from decimal import Decimal
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "halo-billing"
    api_version: str = "v1"
    debug: bool = False

    # Database Components
    db_user: str = "halo"
    db_password: str = "halo"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "halo"
    db_use_nullpool: bool = (
        False  # True for workers (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    # Database timeouts - every store call must be bounded
    db_connect_timeout_seconds: float = 5.0
    db_command_timeout_seconds: float = 10.0
    db_statement_timeout_ms: int = 5000
    db_pool_timeout_seconds: float = 5.0

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # RabbitMQ
    rabbitmq_host: str = "localhost"
    rabbitmq_port: int = 5672
    rabbitmq_username: str = "guest"
    rabbitmq_password: str = "guest"
    rabbitmq_vhost: str = ""

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
    otel_service_name: str = "halo-billing"
    otel_service_version: str = "0.1.0"

    # Axiom (exporters are skipped when no token is configured)
    axiom_token: str = ""
    axiom_dataset: str = ""

    # Internal gateway auth
    internal_api_token: str = "local-dev-token"

    # Billing - Lemon Squeezy
    lemon_squeezy_api_key: str = ""
    lemon_squeezy_store_id: str = ""
    lemon_squeezy_webhook_secret: str = ""
    lemon_squeezy_api_url: str = "https://api.lemonsqueezy.com/v1"
    lemon_squeezy_plus_monthly_variant_id: str = ""
    lemon_squeezy_plus_yearly_variant_id: str = ""
    lemon_squeezy_ultra_monthly_variant_id: str = ""
    lemon_squeezy_ultra_yearly_variant_id: str = ""

    # Billing - profit safety
    ai_budget_factor: Decimal = Decimal("0.5")  # 1 / minimum revenue-to-cost ratio
    free_tier_ai_allowance_usd: Decimal = Decimal("0.25")
    ai_budget_warning_percent: float = 75.0

    # Billing - event serialization
    billing_event_lock_ttl_seconds: int = 30
    billing_event_lock_acquire_timeout_seconds: float = 5.0

    # Meetings
    meeting_sweep_interval_seconds: float = 15.0

    # HTTP
    rate_limit_enabled: bool = True

    @property
    def variant_ids(self) -> dict[str, str]:
        """Lemon Squeezy variant ids keyed by '<plan>_<interval>'."""
        return {
            "plus_monthly": self.lemon_squeezy_plus_monthly_variant_id,
            "plus_yearly": self.lemon_squeezy_plus_yearly_variant_id,
            "ultra_monthly": self.lemon_squeezy_ultra_monthly_variant_id,
            "ultra_yearly": self.lemon_squeezy_ultra_yearly_variant_id,
        }

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:5173",
            ]
        return [
            "https://horalix.com",
            "https://app.horalix.com",
        ]


settings = Settings()
