"""Configuration module for LogMetrikks."""

from logmetrikks.config.settings import (
    APISettings,
    DatabaseSettings,
    GeoIPSettings,
    LogParserSettings,
    SchedulerSettings,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "APISettings",
    "DatabaseSettings",
    "GeoIPSettings",
    "LogParserSettings",
    "SchedulerSettings",
]
