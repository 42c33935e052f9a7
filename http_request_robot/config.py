"""
Runtime configuration for the HTTP Request Robot.

Settings are read from environment variables prefixed with ``ROBOT_``
(or a local ``.env`` file) using pydantic-settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ROBOT_",
        env_file=".env",
        extra="ignore",
    )

    # Storage
    database_url: str = "sqlite:///./http_request_robot.db"

    # OAuth application credentials used for refreshing stored tokens
    oauth_token_url: str = "https://oauth.bitrix.info/oauth/token/"
    client_id: str | None = None
    client_secret: str | None = None
    token_expiry_buffer_seconds: int = Field(default=300, ge=0)
    default_token_lifetime_seconds: int = Field(default=3600, gt=0)
    oauth_timeout_seconds: float = 10.0

    # Outbound calls
    default_request_timeout_ms: int = Field(default=30000, ge=1000, le=300000)
    callback_timeout_seconds: float = 15.0

    # "invocation" uses the auth block sent with each invocation,
    # "stored" uses the credential persisted at install time.
    callback_credentials: Literal["invocation", "stored"] = "invocation"

    # Quotas
    quota_enabled: bool = True
    quota_cache_ttl_seconds: float = 300.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
