"""
Shared configuration management for the Clips service.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLIPS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Durable tier (Redis). Unset means memory-only operation.
    redis_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLIPS_REDIS_URL", "REDIS_URL"),
    )
    upstash_redis_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLIPS_UPSTASH_REDIS_URL", "UPSTASH_REDIS_URL"),
    )
    redis_connect_timeout: float = Field(default=5.0)
    redis_socket_timeout: float = Field(default=5.0)
    redis_max_retries: int = Field(default=3)
    redis_retry_backoff: float = Field(default=0.1)
    redis_health_check_interval: float = Field(default=30.0)
    redis_key_prefix: str = Field(default="clip:")

    # Store
    sweep_interval_seconds: float = Field(default=60.0)
    default_expiration_minutes: int = Field(default=60)
    token_locking: bool = Field(default=False)
    shutdown_drain_timeout: float = Field(default=5.0)

    @property
    def durable_url(self) -> Optional[str]:
        """Redis URL for the durable tier; production prefers the Upstash URL."""
        if self.env == "production":
            return self.upstash_redis_url or self.redis_url
        return self.redis_url


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int = 8000
    host: str = "0.0.0.0"


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
