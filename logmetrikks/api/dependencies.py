"""Shared dependency providers for API layer."""
from __future__ import annotations

from litestar import Request

from logmetrikks.services.ingestion import IngestionService


def provide_ingestion_service(request: Request) -> IngestionService | None:
    """Provide the IngestionService from app state.

    Returns None if the service is not available (degraded mode).
    """
    return getattr(request.app.state, "ingestion_service", None)
