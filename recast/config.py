"""Configuration management for Recast."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="RECAST_", extra="ignore"
    )

    # Origin fetch
    fetch_timeout_seconds: float = Field(default=15.0, gt=0)
    max_feed_bytes: int = Field(default=20 * 1024 * 1024, gt=0)  # 20 MiB
    user_agent: str = "recast/1.0 (+podcast delay gateway)"

    # Delay handling
    min_delay_hours: float = Field(default=0.0, ge=0)
    annotate_original_date: bool = False

    # Rate limiting (slowapi limit string)
    rss_rate_limit: str = "120/minute"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")
    log_level: str = Field(
        default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$"
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
