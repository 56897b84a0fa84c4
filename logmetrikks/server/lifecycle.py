"""Application lifecycle hooks for startup and shutdown."""

from __future__ import annotations

import logging
import asyncio
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from logmetrikks.config.settings import get_settings
from logmetrikks.exceptions import StoreSetupError
from logmetrikks.server.plugins import store
from logmetrikks.services.ingestion import IngestionService
from logmetrikks.server.scheduler import create_scheduler

if TYPE_CHECKING:
    from litestar import Litestar

logger = logging.getLogger(__name__)


async def on_startup(app: "Litestar") -> None:
    """Set up the store and start scheduled ingestion.

    - If the store cannot be set up, start the API in a degraded mode (no
      ingestion service, no scheduler) instead of failing app startup.
    """
    settings = get_settings()

    try:
        await asyncio.to_thread(store.setup, reset=settings.database.drop_on_startup)
    except StoreSetupError as e:
        logger.warning("Starting without store: skipping ingestion. (%s)", e)
        return

    ingestion_service = IngestionService.from_settings(store, settings)

    scheduler: AsyncIOScheduler = create_scheduler(ingestion_service, settings)
    scheduler.start()
    logger.info("Started APScheduler")

    # Store in app state for shutdown and API access
    app.state.ingestion_service = ingestion_service
    app.state.scheduler = scheduler


async def on_shutdown(app: "Litestar") -> None:
    """Gracefully stop background services and clean up resources."""
    scheduler: AsyncIOScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler and scheduler.running:
        # wait=True lets a running ingestion finish its current pass
        await asyncio.to_thread(scheduler.shutdown, wait=True)
        logger.info("Stopped APScheduler")

    store.dispose()
    logger.info("Disposed store engine")
