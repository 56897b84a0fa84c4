"""Global plugin instances and configurations.

This module provides singleton instances for:
- Store (engine and schema for the visits table)
- Logging configuration, shared by the server and the one-shot command
"""
from __future__ import annotations

from litestar.logging import LoggingConfig

from logmetrikks.config.settings import get_settings
from logmetrikks.db.store import Store

settings = get_settings()

# Store instance - schema setup happens in the startup hook
store = Store.from_settings(settings.database)

# Logging configuration
logging_config = LoggingConfig(
    root={"level": "DEBUG" if settings.debug else settings.api.log_level, "handlers": ["queue_listener"]},
    formatters={
        "standard": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"}
    },
    log_exceptions="always",
)
