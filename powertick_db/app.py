#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Mounts the operational routers of the database core and ties the
connection manager to the application lifecycle:
- startup: logging setup, connection manager
- shutdown: pool drained and closed; uvicorn runs it on SIGTERM/SIGINT
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from powertick_db.api.middleware.error_handler import register_error_handling
from powertick_db.api.routes import admin_router, health_router
from powertick_db.core.config.constants import (
    HEADER_API_VERSION,
    HEADER_CORRELATION_ID,
    HEADER_ENVIRONMENT,
)
from powertick_db.core.config.settings import Settings, get_settings
from powertick_db.core.logging.logger import (
    clear_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)
from powertick_db.core.resilience.connection_manager import (
    ResilientConnectionManager,
    get_connection_manager,
)

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
    logger.info(
        "Starting Powertick DB core",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    manager = getattr(app.state, "connection_manager", None)
    if manager is None:
        manager = get_connection_manager()
        app.state.connection_manager = manager

    try:
        logger.info("Application startup complete")
        yield
    finally:
        logger.info("Shutting down application")
        await manager.shutdown()
        logger.info("Application shutdown complete")


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    settings: Settings | None = None,
    manager: ResilientConnectionManager | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration; the global settings when omitted
        manager: Connection manager to serve; created at startup when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Operational endpoints of the Powertick PostgreSQL access core",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if manager is not None:
        app.state.connection_manager = manager

    # Middleware executes in reverse registration order: the correlation
    # middleware below wraps error handling, so error responses get the header.
    register_error_handling(app, include_traceback=settings.app.ENVIRONMENT == "local")

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Propagate or create the correlation ID of the request."""
        correlation_id = set_correlation_id(request.headers.get(HEADER_CORRELATION_ID))
        try:
            response = await call_next(request)
            response.headers[HEADER_CORRELATION_ID] = correlation_id
            response.headers[HEADER_API_VERSION] = settings.app.APP_VERSION
            response.headers[HEADER_ENVIRONMENT] = settings.app.ENVIRONMENT
            return response
        finally:
            clear_correlation_id()

    app.include_router(health_router)
    app.include_router(admin_router)

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=8000,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
