"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"

STORAGE_BACKENDS = ("database", "memory")


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./care_alerts.db",
        description="SQLAlchemy URL of the durable key/value store",
        min_length=1,
    )
    storage_backend: str = Field(
        default="database",
        description="Where the unread ledger is persisted: 'database' or 'memory'",
    )
    notification_log_cap: int = Field(
        default=50,
        description="Maximum number of notifications kept in the persisted log",
        gt=0,
    )
    unread_count_key: str = Field(
        default="notificationUnreadCount",
        description="Storage key holding the textual unread counter",
        min_length=1,
    )
    notifications_key: str = Field(
        default="notifications",
        description="Storage key holding the JSON notification log",
        min_length=1,
    )
    supabase_url: str | None = Field(
        default=None,
        description="Supabase project URL used to open the realtime change feed",
    )
    supabase_key: str | None = Field(
        default=None,
        description="Supabase API key used to open the realtime change feed",
    )
    watched_tables: str = Field(
        default="users,alerts,deliveries",
        description="Comma separated list of tables subscribed at startup",
    )
    watch_status_changes: bool = Field(
        default=False,
        description="Also subscribe to UPDATE events (resolved alerts, completed deliveries, stock)",
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to stamp notifications",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma separated list of origins allowed by CORS",
    )

    @field_validator("storage_backend")
    @classmethod
    def _validate_storage_backend(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}"
            )
        return normalized

    @model_validator(mode="after")
    def _validate_supabase_pair(self) -> "Settings":
        if bool(self.supabase_url) ^ bool(self.supabase_key):
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY must both be provided to enable the change feed"
            )
        return self

    @property
    def watched_table_list(self) -> list[str]:
        return _split_csv(self.watched_tables)

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def change_feed_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
