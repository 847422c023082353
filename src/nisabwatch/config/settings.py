"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Values come from environment variables or a local .env file and are
validated once at import time.

Files that USE this module:
- nisabwatch.app (bot token, schedules, logging)
- nisabwatch.adapters.providers.* (API keys, URLs, timeouts)
- nisabwatch.adapters.persistence.* (file paths, Supabase connection)
- nisabwatch.application.metals_service (build_metals_service wiring)

Files that this module USES:
- nisabwatch.shared.validators (validation functions for settings)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from datetime import time, timezone
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nisabwatch.shared.validators import (
    validate_api_key,
    validate_bot_token,
    validate_chat_id,
    validate_daily_time,
)

SUPPORTED_CURRENCIES = ("USD", "GBP", "AED", "SAR", "EGP")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Telegram ---
    bot_token: str = Field(default="", alias="BOT_TOKEN")
    alert_chat_id: str = Field(default="", alias="ALERT_CHAT_ID")

    # --- Price providers (a missing key disables that provider) ---
    metalpriceapi_key: str = Field(default="", alias="METALPRICEAPI_KEY")
    metalpriceapi_url: str = Field(
        default="https://api.metalpriceapi.com/v1/latest", alias="METALPRICEAPI_URL"
    )
    metals_live_key: str = Field(default="", alias="METALS_LIVE_API_KEY")
    metals_live_url: str = Field(default="https://api.metals.live/v1", alias="METALS_LIVE_URL")
    goldapi_key: str = Field(default="", alias="GOLDAPI_KEY")
    goldapi_url: str = Field(default="https://www.goldapi.io/api", alias="GOLDAPI_URL")

    # --- Resolution and caching ---
    provider_timeout_seconds: float = Field(default=2.0, alias="PROVIDER_TIMEOUT_SECONDS", ge=0.1, le=30)
    price_cache_minutes: int = Field(default=60, alias="PRICE_CACHE_MINUTES", ge=1, le=1440)
    watch_interval_minutes_override: Optional[int] = Field(
        default=None, alias="WATCH_INTERVAL_MINUTES", ge=1, le=1440
    )
    daily_update_time: str = Field(default="08:00", alias="DAILY_UPDATE_TIME")

    # --- User defaults ---
    default_currency: str = Field(default="USD", alias="DEFAULT_CURRENCY")
    default_alert_threshold_pct: float = Field(default=2.0, alias="DEFAULT_ALERT_THRESHOLD_PCT", gt=0.0, le=100.0)

    # --- Local persistence ---
    price_history_file: Path = Field(default=Path("./data/price_history.json"), alias="PRICE_HISTORY_FILE")
    preferences_file: Path = Field(default=Path("./data/preferences.json"), alias="PREFERENCES_FILE")

    # --- Remote record store (Supabase REST) ---
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")
    supabase_preferences_table: str = Field(default="user_preferences", alias="SUPABASE_PREFERENCES_TABLE")
    supabase_nisab_table: str = Field(default="nisab_prices", alias="SUPABASE_NISAB_TABLE")
    http_timeout_seconds: int = Field(default=10, alias="HTTP_TIMEOUT_SECONDS", ge=1, le=60)

    # --- Logging (for server deployment) ---
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_stdout: bool = Field(default=True, alias="NISABWATCH_LOG_STDOUT")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    @property
    def watch_interval_minutes(self) -> int:
        """
        Interval of the price watch job.

        Defaults to the cache TTL: polling more often would only hit the cache.
        """
        return self.watch_interval_minutes_override or self.price_cache_minutes

    @property
    def daily_update_clock(self) -> time:
        hour, minute = (int(part) for part in self.daily_update_time.split(":"))
        return time(hour, minute, tzinfo=timezone.utc)

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        if v and not validate_bot_token(v):
            raise ValueError("Invalid BOT_TOKEN format")
        return v

    @field_validator("alert_chat_id")
    @classmethod
    def validate_alert_chat_id(cls, v: str) -> str:
        if v and not validate_chat_id(v):
            raise ValueError("Invalid ALERT_CHAT_ID format")
        return v

    @field_validator("metalpriceapi_key", "metals_live_key", "goldapi_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        v = v.strip()
        if v and not validate_api_key(v):
            raise ValueError("Invalid API key format")
        return v

    @field_validator("daily_update_time")
    @classmethod
    def validate_daily_update_time(cls, v: str) -> str:
        if not validate_daily_time(v):
            raise ValueError("DAILY_UPDATE_TIME must be HH:MM (24h, UTC)")
        return v

    @field_validator("default_currency")
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in SUPPORTED_CURRENCIES:
            raise ValueError(f"DEFAULT_CURRENCY must be one of {', '.join(SUPPORTED_CURRENCIES)}")
        return v

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("SUPABASE_URL must be an http(s) URL")
        return v

    def model_post_init(self, __context) -> None:
        """Ensure data directories exist."""
        self.price_history_file.parent.mkdir(parents=True, exist_ok=True)
        self.preferences_file.parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
