# src/refrate/config/settings.py
"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Supports environment variables and a local .env file with validation.

Files that USE this module:
- refrate.app (builds the resolver, database and statistics service)
- refrate.adapters.sources.* (source URLs, timeouts and credentials)
- refrate.adapters.persistence.* (file paths and database URL)
- refrate.shared.clock (local timezone)

Files that this module USES:
- refrate.shared.validators (validation functions for settings)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from pathlib import Path  # Object-oriented filesystem paths
from typing import Optional  # Type hints for optional values

from pydantic import Field, field_validator  # Data validation and field configuration
from pydantic_settings import BaseSettings, SettingsConfigDict  # Settings management with Pydantic

from refrate.shared.validators import (
    validate_api_key,  # Validate API key format
    validate_currency_code,  # Validate ISO 4217 currency codes
    validate_timezone,  # Validate IANA timezone names
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Locale ---
    timezone: str = Field(default="America/Bogota", alias="REFRATE_TIMEZONE")

    # --- Relational store ---
    database_url: str = Field(default="sqlite:///./data/refrate.db", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # --- Primary source (SOAP numeric lookup) ---
    primary_url: str = Field(
        default=(
            "https://www.superfinanciera.gov.co/SuperfinancieraWebServiceTRM/"
            "TCRMServicesWebService/TCRMServicesWebService"
        ),
        alias="PRIMARY_RATE_URL",
    )
    primary_timeout_seconds: int = Field(default=15, alias="PRIMARY_RATE_TIMEOUT_SECONDS", ge=1, le=120)
    primary_verify_tls: bool = Field(default=True, alias="PRIMARY_RATE_VERIFY_TLS")

    # --- Secondary source (REST time-series) ---
    secondary_url: str = Field(
        default="https://openexchangerates.org/api/time-series.json",
        alias="SECONDARY_RATE_URL",
    )
    secondary_app_id: str = Field(default="", alias="SECONDARY_RATE_APP_ID")
    secondary_timeout_seconds: int = Field(default=10, alias="SECONDARY_RATE_TIMEOUT_SECONDS", ge=1, le=120)
    secondary_base: str = Field(default="USD", alias="SECONDARY_RATE_BASE")
    secondary_symbol: str = Field(default="COP", alias="SECONDARY_RATE_SYMBOL")

    # --- Cache policy ---
    past_date_ttl_days: int = Field(default=30, alias="RATE_CACHE_PAST_TTL_DAYS", ge=1, le=365)
    future_date_ttl_minutes: int = Field(default=60, alias="RATE_CACHE_FUTURE_TTL_MINUTES", ge=1, le=1440)

    # --- Planning ---
    planning_business_days: int = Field(default=10, alias="PLANNING_BUSINESS_DAYS", ge=0, le=90)
    rate_window_buffer_days: int = Field(default=15, alias="RATE_WINDOW_BUFFER_DAYS", ge=0, le=90)
    stats_live_rate_fallback: bool = Field(default=True, alias="STATS_LIVE_RATE_FALLBACK")

    # --- Persistence ---
    data_dir: Path = Field(default=Path("./data"), alias="REFRATE_DATA_DIR")
    rate_cache_file: Path = Field(default=Path("./data/rate_cache.json"), alias="RATE_CACHE_FILE")
    last_known_good_file: Path = Field(
        default=Path("./data/last_known_good.json"), alias="LAST_KNOWN_GOOD_FILE"
    )

    # --- Logging ---
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    @property
    def secondary_configured(self) -> bool:
        """True when an app id for the secondary source is available."""
        return bool(self.secondary_app_id)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone name."""
        if not validate_timezone(v):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("secondary_app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        """Validate the secondary source app id when one is provided."""
        if v and not validate_api_key(v):
            raise ValueError("Invalid SECONDARY_RATE_APP_ID format")
        return v

    @field_validator("secondary_base", "secondary_symbol")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate currency codes."""
        v = v.strip().upper()
        if not validate_currency_code(v):
            raise ValueError(f"Invalid currency code: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return v

    def model_post_init(self, __context) -> None:
        """Post-initialization: make sure persistence directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.rate_cache_file.parent.mkdir(parents=True, exist_ok=True)
        self.last_known_good_file.parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()


# ============================================================================
# Operations
# ============================================================================
#
# Recompute yesterday's snapshot (typical nightly cron entry):
#    refrate stats --date "$(date -d yesterday +%F)"
#
# Store today's reference rate in the historical table:
#    refrate fetch-rate
#
# Drop cached rates (keeps the last-known-good value unless --all):
#    refrate clear-cache [--all]
#
# ============================================================================
