"""Application factory for creating Litestar app instance."""

from __future__ import annotations


from litestar import Litestar
from litestar.openapi import OpenAPIConfig
from litestar.middleware.logging import LoggingMiddlewareConfig

from logmetrikks.config.settings import get_settings
from logmetrikks.server import plugins
from logmetrikks.server.lifecycle import on_startup, on_shutdown
from logmetrikks.server.routes import get_route_handlers


def create_app() -> Litestar:
    """Create and configure the Litestar application.

    This factory function loads configuration and initializes the app
    with the stats/ingest endpoints, lifecycle hooks and logging.

    Returns:
        Litestar: Configured application instance
    """
    # Load settings once at app creation
    settings = get_settings()

    # Configure OpenAPI
    openapi_config = OpenAPIConfig(
        title=settings.name,
        version=settings.version,
        description=settings.description,
    )

    logging_middleware_config = LoggingMiddlewareConfig()

    # Create app with configuration
    app = Litestar(
        debug=settings.debug,
        route_handlers=get_route_handlers(),
        on_startup=[on_startup],
        on_shutdown=[on_shutdown],
        logging_config=plugins.logging_config,
        openapi_config=openapi_config,
        middleware=[logging_middleware_config.middleware],
    )

    return app
