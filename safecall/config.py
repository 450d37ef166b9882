"""Configuration for SafeCall."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library defaults, overridable with ``SAFECALL_*`` environment variables."""

    # Retry
    retry_attempts: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=0.1, ge=0.0)  # Seconds before the first retry
    retry_backoff: float = Field(default=1.5, gt=0.0)

    # Circuit breaker
    breaker_threshold: int = Field(default=5, ge=1)
    breaker_reset_timeout: float = Field(default=30.0, ge=0.0)  # Seconds

    # Rate limiter
    rate_limit_max_calls: int = Field(default=10, ge=0)
    rate_limit_window: float = Field(default=60.0, gt=0.0)  # Seconds

    # Profiler
    profiler_slow_threshold: float = Field(default=0.1, ge=0.0)  # Seconds

    # Default log sink
    log_prefix: str = "[SafeCall]"

    model_config = SettingsConfigDict(
        env_prefix="SAFECALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
