"""
Application settings.

Loads process configuration from environment variables using pydantic-settings.
Business parameters (percentages, caps, limits) live in admin config
documents, see ``mlm_engine.config.admin_config``.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (Dramatiq broker)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/mlm_engine.log"
    health_check_port: int = Field(
        default=8080, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Batch processing
    referral_batch_size: int = Field(
        default=100,
        ge=1,
        le=5000,
        description="Activations fetched per chunk by referral income jobs",
    )
    wallet_sync_batch_size: int = Field(
        default=500, ge=1, description="Users fetched per chunk by wallet sync"
    )
    auto_block_batch_size: int = Field(
        default=200, ge=1, description="Users fetched per chunk by auto-block job"
    )
    referral_poll_interval_seconds: int = Field(
        default=20,
        ge=5,
        description="Interval for pending referral income and wallet sync jobs",
    )

    # Upline walk guard (independent from maxLevels in admin config)
    max_upline_hops: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Hard bound on upline walk used for cycle detection",
    )

    # Emergency stop flags
    emergency_stop_withdrawals: bool = Field(
        default=False,
        description="Emergency stop for all new withdrawal requests"
    )
    emergency_stop_transfers: bool = Field(
        default=False,
        description="Emergency stop for all user-to-user transfers"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Require an async driver in the database URL."""
        if "+" not in v.split("://", 1)[0]:
            raise ValueError(
                "DATABASE_URL must use an async driver, "
                "e.g. postgresql+asyncpg:// or sqlite+aiosqlite://"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)}")
        return level

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Reject debug mode in production."""
        if self.environment == "production" and self.debug:
            raise ValueError("DEBUG must be disabled in production environment")
        return self


settings = Settings()
