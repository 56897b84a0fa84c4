from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from logmetrikks.services.logparser.constants import (
    ALLOWED_GEOIP_LOCALES,
    DEFAULT_BATCH_SIZE,
    MIN_LINE_LENGTH,
)


class DatabaseSettings(BaseSettings):
    """Database configuration settings.

    SQLite is the default destination. The journal/page-size/vacuum options are
    only applied when the configured URL points at a SQLite database.
    """

    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")

    url: str = Field(default="sqlite:///nginx.sqlite3", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    drop_on_startup: bool = Field(
        default=False,
        description="Drop and recreate the visits and checkpoint tables on startup (full rebuild)",
    )
    journal_mode: Literal["delete", "truncate", "persist", "memory", "wal", "off"] = Field(
        default="delete",
        description="SQLite journal_mode pragma",
    )
    page_size: int = Field(default=1024, description="SQLite page_size pragma in bytes")
    vacuum: bool = Field(default=True, description="Run VACUUM on SQLite during store setup")

    @model_validator(mode="after")
    def validate_page_size(self) -> "DatabaseSettings":
        """Ensure page_size is a power of two between 512 and 65536."""
        size = self.page_size
        if size < 512 or size > 65536 or size & (size - 1):
            raise ValueError(f"Invalid SQLite page_size: {size}. Must be a power of two between 512 and 65536")
        return self


class GeoIPSettings(BaseSettings):
    """GeoIP database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="GEOIP_", env_file=".env", extra="ignore")

    db_path: Path = Field(
        default=Path("data/GeoLite2-Country.mmdb"),
        description="Path to GeoIP2/GeoLite2 Country (or City) database file",
    )
    locales: list[str] = Field(
        default=["en"],
        description="List of GeoIP locales to use",
    )
    validate_db_path: bool = Field(
        default=False,
        description="Validate that the GeoIP database file exists (set to True for production)"
    )
    validate_locales: bool = Field(
        default=True,
        description="Validate that the specified GeoIP locales are supported"
    )

    @model_validator(mode="after")
    def validate_geoip_db_exists(self) -> "GeoIPSettings":
        """Ensure GeoIP database file exists if validation is enabled."""
        if self.validate_db_path and not self.db_path.exists():
            raise ValueError(f"GeoIP database file not found: {self.db_path}")
        return self

    @model_validator(mode="after")
    def validate_geoip_locales(self) -> "GeoIPSettings":
        """Ensure GeoIP locales are valid if validation is enabled."""
        if self.validate_locales:
            invalid_locales = [loc for loc in self.locales if loc not in ALLOWED_GEOIP_LOCALES]
            if invalid_locales:
                raise ValueError(f"Invalid GeoIP locales: {invalid_locales}. Allowed locales are: {ALLOWED_GEOIP_LOCALES}")
        return self


class APISettings(BaseSettings):
    """API server configuration settings."""

    model_config = SettingsConfigDict(env_prefix="API_", env_file=".env", extra="ignore")

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=5001, description="API server port")
    workers: int = Field(default=1, description="Number of worker processes")
    reload: bool = Field(default=False, description="Enable auto-reload on code changes")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


class LogParserSettings(BaseSettings):
    """Log parser and ingestion configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOGPARSER_", env_file=".env", extra="ignore")

    log_path: Path = Field(
        default=Path("app-access.log"),
        description="Path to the nginx access log file",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        gt=0,
        description="Number of visits buffered before a batch is committed.",
    )
    min_line_length: int = Field(
        default=MIN_LINE_LENGTH,
        ge=0,
        description="Lines shorter than this are treated as noise and skipped.",
    )
    anonymize_ip: bool = Field(
        default=False,
        description="Truncate client addresses (IPv4 /24, IPv6 /48) before storage and geo lookup.",
    )
    resume: bool = Field(
        default=True,
        description="Skip lines older than the persisted high-water-mark of the previous run.",
    )


class SchedulerSettings(BaseSettings):
    """APScheduler configuration for periodic ingestion."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", env_file=".env", extra="ignore")

    enabled: bool = Field(
        default=True,
        description="Enable scheduled ingestion runs",
    )
    ingest_interval_minutes: int = Field(
        default=60,
        gt=0,
        description="Minutes between scheduled ingestion runs",
    )


class Settings(BaseSettings):
    """Main application settings.

    This class aggregates all configuration sections and provides
    a single point of access for application configuration.

    Configuration precedence (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values

    Example .env file:
        APP_DEBUG=true
        API_PORT=5001
        DB_URL=sqlite:///nginx.sqlite3
        GEOIP_DB_PATH=/data/GeoLite2-Country.mmdb
        LOGPARSER_LOG_PATH=/var/log/nginx/app-access.log
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    name: str = Field(default="LogMetrikks", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")
    description: str = Field(
        default="Nginx access log ingestion into an enriched visits table",
        description="Application description",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )

    # Sub-configurations
    api: APISettings = Field(default_factory=APISettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    geoip: GeoIPSettings = Field(default_factory=GeoIPSettings)
    logparser: LogParserSettings = Field(default_factory=LogParserSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function is cached to ensure we only parse configuration once.
    Use this function throughout the application to access settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
