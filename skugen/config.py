"""
Configuration management.
Simple .env based config, one store per deployment.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Shopify
    shop_domain: str = ""  # e.g. "mystore.myshopify.com"
    access_token: str = ""  # Admin API token (shpat_...)
    api_version: str = "2025-01"

    # Sync
    bulk_threshold: int = 100  # variants; larger selections use a bulk operation
    bulk_poll_interval: float = 3.0  # seconds
    bulk_max_poll_time: float = 3600 * 2  # 2 hours max
    sync_delay_seconds: float = 0.3

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
