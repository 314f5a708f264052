"""
Application settings using Pydantic.

Provides environment-based configuration loading with SHOOTOPS_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from shootops.context import OperationContext


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHOOTOPS_",
        extra="ignore",
    )

    # Resource API
    api_url: str = "http://localhost:8001"
    api_token: str | None = None
    api_timeout: float = 30.0

    # Polling
    poll_interval: float = 5.0
    severe_threshold: float = 30.0
    wait_timeout: float = 180.0

    # DNS
    dns_entry_ttl_seconds: int = 120
    dns_wait_timeout: float = 120.0
    dns_keep_provider_on_migration: bool = False

    # Seed
    seed_provider_type: str | None = None
    seed_backup_provider: str | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    def operation_context(self) -> OperationContext:
        """Build the default context for one reconciliation pass."""
        return OperationContext(
            interval=self.poll_interval,
            severe_threshold=self.severe_threshold,
            timeout=self.wait_timeout,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
