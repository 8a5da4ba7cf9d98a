"""
Centralized application settings using Pydantic Settings.

All environment variables are validated at startup. Missing required variables
will raise a ValidationError immediately, preventing the application from starting
with invalid configuration.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Supabase Configuration
    supabase_url: str
    supabase_secret_key: str

    # Redis Configuration (rate counters, circuit state, job results, queue)
    redis_url: str = "redis://localhost:6379/0"

    # Upstream language model
    model_api_key: str
    model_name: str = "gpt-4o-mini"
    model_base_url: Optional[str] = None
    model_max_tokens: int = 300
    model_temperature: float = 0.0

    # Daily request quotas per plan tier
    rate_limit_free_daily: int = 15
    rate_limit_pro_daily: int = 100
    rate_limit_enterprise_daily: int = 1000

    # Suggestion pipeline
    suggestion_mode: Literal["inline", "queued"] = "inline"
    start_worker: bool = False

    # Client-side polling (used by the suggestion API client)
    poll_interval_seconds: float = 1.0
    poll_timeout_seconds: float = 60.0

    # Admin
    admin_api_key: Optional[str] = None

    # Application Configuration
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Optional: Additional CORS origins (comma-separated)
    additional_cors_origins: Optional[str] = None

    @property
    def cors_origins(self) -> list[str]:
        """Get list of allowed CORS origins."""
        origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
        if self.frontend_url and self.frontend_url not in origins:
            origins.append(self.frontend_url)
        if self.additional_cors_origins:
            origins.extend(
                origin.strip()
                for origin in self.additional_cors_origins.split(",")
                if origin.strip()
            )
        return origins

    @property
    def daily_limits(self) -> dict[str, int]:
        """Daily suggestion quota keyed by plan tier."""
        return {
            "free": self.rate_limit_free_daily,
            "pro": self.rate_limit_pro_daily,
            "enterprise": self.rate_limit_enterprise_daily,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are validated on first call. Subsequent calls return the cached instance.

    Returns:
        Settings: Validated application settings

    Raises:
        pydantic.ValidationError: If required environment variables are missing
    """
    return Settings()
