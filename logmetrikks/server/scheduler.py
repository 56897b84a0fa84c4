"""APScheduler configuration and scheduled job definitions.

This module configures the AsyncIOScheduler from APScheduler 3.x and defines
the periodic ingestion job. The job is synchronous, so the scheduler runs it
in its thread pool.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from logmetrikks.exceptions import IngestionBusyError

if TYPE_CHECKING:
    from logmetrikks.config.settings import Settings
    from logmetrikks.services.ingestion import IngestionService

logger = logging.getLogger(__name__)


def ingest_job(ingestion_service: "IngestionService") -> None:
    """Run one ingestion pass of the configured log file.

    Args:
        ingestion_service: Service owning the store and GeoIP reader.
    """
    try:
        summary = ingestion_service.run_once()
    except IngestionBusyError:
        logger.info("Skipping scheduled ingestion, a run is already in progress")
        return
    logger.info(
        "Scheduled ingestion processed %d lines (high_water_mark=%d)",
        summary.lines_processed,
        summary.high_water_mark,
    )


def create_scheduler(
    ingestion_service: "IngestionService",
    settings: "Settings",
) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance.

    Args:
        ingestion_service: Service the ingestion job runs.
        settings: Application settings for job configuration.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    scheduler = AsyncIOScheduler(timezone=timezone.utc)

    if not settings.scheduler.enabled:
        logger.info("Scheduler disabled via settings")
        return scheduler

    scheduler.add_job(
        ingest_job,
        IntervalTrigger(
            minutes=settings.scheduler.ingest_interval_minutes,
        ),
        id="log-ingestion",
        name="Ingest access log",
        args=[ingestion_service],
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info(
        "Scheduled log ingestion every %d minute(s)",
        settings.scheduler.ingest_interval_minutes,
    )

    return scheduler
