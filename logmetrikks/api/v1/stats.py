"""Stats API endpoint for ingestion statistics."""
from __future__ import annotations

from typing import Any

from litestar import get
from litestar.di import Provide

from logmetrikks.services.ingestion import IngestionService
from logmetrikks.api.dependencies import provide_ingestion_service as pis


@get("/stats", dependencies={"ingestion_service": Provide(pis, sync_to_thread=False)})
async def stats(ingestion_service: IngestionService | None) -> dict[str, Any]:
    """Get ingestion statistics and the summary of the last run.

    Returns:
        Dictionary with ingestion statistics.
        Returns zeros if ingestion service is not available (degraded mode).
    """
    if ingestion_service is None:
        return {
            "total_runs": 0,
            "total_processed": 0,
            "total_rows_written": 0,
            "is_running": False,
            "last_run": None,
        }

    last_summary = ingestion_service.last_summary
    return {
        "total_runs": ingestion_service.total_runs,
        "total_processed": ingestion_service.total_processed,
        "total_rows_written": ingestion_service.total_rows_written,
        "is_running": ingestion_service.is_running,
        "last_run": last_summary.to_dict() if last_summary else None,
    }
