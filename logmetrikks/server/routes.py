"""Central route registration."""
from litestar.types import ControllerRouterHandler

from logmetrikks.api.v1.ingest import trigger_ingestion
from logmetrikks.api.v1.settings import read_settings
from logmetrikks.api.v1.stats import stats

def get_route_handlers() -> list[ControllerRouterHandler]:
    """Get all route handlers for the application."""
    return [
        trigger_ingestion,
        read_settings,
        stats,
    ]
