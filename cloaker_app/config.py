from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Link Cloaker"
    app_version: str = "1.0.0"

    # Persistent store
    database_url: str = "sqlite:///./link_cloaker.db"
    store_backend: str = "sqlalchemy"  # Options: "sqlalchemy", "memory"

    # Cache settings
    cache_backend: str = "memory"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_key_prefix: str = "cloaker:"
    # Seconds a cached snapshot stays valid. 0 means every read goes to
    # the store, only click writes are batched.
    cache_ttl: float = 0

    # Click accounting
    click_batch_threshold: int = 10  # Pending clicks that trigger an early flush
    click_flush_interval: float = 1.0  # Periodic flush in seconds

    # Analytics queue settings
    queue_backend: str = "memory"  # Options: "redis_streams", "memory"
    queue_name: str = "campaign_clicks"
    queue_consumer_group: str = "click_workers"
    queue_batch_size: int = 100  # Number of messages to process at once

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Settings instance shared by the running application."""
    return Settings()
