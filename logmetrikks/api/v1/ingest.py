"""Endpoint to trigger an ingestion run outside the schedule."""
from __future__ import annotations

import asyncio
from typing import Any

from litestar import post
from litestar.di import Provide
from litestar.exceptions import (
    ClientException,
    NotFoundException,
    ServiceUnavailableException,
)
from litestar.status_codes import HTTP_409_CONFLICT

from logmetrikks.exceptions import BatchWriteError, IngestionBusyError, LogSourceMissingError
from logmetrikks.services.ingestion import IngestionService
from logmetrikks.api.dependencies import provide_ingestion_service as pis


@post("/ingest", dependencies={"ingestion_service": Provide(pis, sync_to_thread=False)})
async def trigger_ingestion(ingestion_service: IngestionService | None) -> dict[str, Any]:
    """Run one ingestion pass and return its summary."""
    if ingestion_service is None:
        raise ServiceUnavailableException(detail="Ingestion service is not available")
    try:
        summary = await asyncio.to_thread(ingestion_service.run_once)
    except IngestionBusyError as exc:
        raise ClientException(status_code=HTTP_409_CONFLICT, detail=str(exc)) from exc
    except LogSourceMissingError as exc:
        raise NotFoundException(detail=str(exc)) from exc
    except BatchWriteError as exc:
        raise ServiceUnavailableException(detail=str(exc)) from exc
    return summary.to_dict()
