"""Configuration settings for the sync engine."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from .conflict.resolution import ConflictStrategy


class SyncSettings(BaseSettings):
    """Engine settings loaded from ``ALLEGRO_SYNC_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ALLEGRO_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Marketplace
    allegro_api_url: str = "https://api.allegro.pl"
    allegro_account_id: str | None = None  # account the engine polls for
    http_timeout: float = 10.0

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./allegro_sync.db"

    # Notifications
    notification_service_url: str | None = None
    notification_email_to: str | None = None  # admin recipient
    notify_stock_low: bool = False
    notify_order_updated: bool = False
    notify_order_created: bool = False
    notify_sync_errors: bool = False

    # Ingestion
    event_page_size: int = 100
    event_retention_days: int = 30

    # Sync runs
    sync_batch_size: int = 100
    sync_window_hours: int = 24
    conflict_strategy: ConflictStrategy = ConflictStrategy.TIMESTAMP
    default_currency: str = "PLN"

    # Resilience
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    retry_jitter: bool = False

    # Locking
    entity_lock_timeout: float = 10.0
    entity_lock_ttl: float = 30.0
    run_lease_ttl: float = 900.0


@lru_cache
def get_settings() -> SyncSettings:
    """Get cached settings instance."""
    return SyncSettings()
