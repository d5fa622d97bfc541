from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    environment: str = "development"
    log_level: str = "INFO"

    # Database
    postgres_user: str = "pantry"
    postgres_password: str = "pantry"
    postgres_db: str = "pantry_rewards"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: Optional[str] = None
    db_statement_timeout_ms: int = 5000

    # Redis (recipe provider response cache)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0

    # Secret
    secret_key: str = "change-me"

    #JWT
    access_token_expire_minutes: int = 30

    # Recipe provider
    recipe_provider_base_url: str = "https://www.yummy.co.id/api"
    recipe_provider_timeout_seconds: float = 30.0
    recipe_cache_ttl_seconds: int = 604800  # 7 days
    recipe_fetch_limit: int = 15
    recipe_top_n: int = 5
    recipe_fallback_size: int = 5

    # Rewards
    points_per_food_save: int = 10
    points_per_donated_unit: int = 10
    redemption_expiry_policy: str = "voucher_valid_until"  # or "fixed_window"
    redemption_window_days: int = 30

    # Orders
    purchase_default_expiry_days: int = 7  # picked-up products without a shelf life

    # Notifications
    expiry_lookahead_days: int = 30
    low_stock_threshold_percent: float = 20.0

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    class Config:
        env_file = ".env"


settings = Settings()
