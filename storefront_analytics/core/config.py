"""Application configuration via Pydantic Settings v2."""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "StorefrontAnalytics"
    app_env: Literal["development", "testing", "staging", "production"] = "development"
    debug: bool = False

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # API
    api_host: str = "0.0.0.0"  # noqa: S104
    api_port: int = 8123

    # Analytics
    analytics_top_n: int = Field(10, ge=1, le=10)
    analytics_low_stock_threshold: int = Field(10, ge=1)
    analytics_timezone: str = "UTC"
    analytics_default_period: Literal["today", "7d", "30d", "90d", "1y"] = "30d"
    analytics_max_date_range_days: int = 730
    analytics_parallel_aggregators: bool = True

    @field_validator("analytics_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate the reporting timezone is a known IANA name.

        Args:
            v: Timezone name.

        Returns:
            Validated timezone name.

        Raises:
            ValueError: If the timezone is unknown.
        """
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'. Expected an IANA name like 'Asia/Kolkata'") from e
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.app_env == "testing"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
