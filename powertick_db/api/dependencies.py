"""
FastAPI Dependency Injection Module
===================================

Reusable dependencies for the operational routes. The connection manager
is created once during application startup (lifespan) and stored in
``app.state``; routes receive it through ``ManagerDep`` so tests can swap
in a manager built with fake collaborators.

Example:
    @router.get("/admin/metrics")
    async def metrics(manager: ManagerDep):
        return manager.get_metrics()
"""

from typing import Annotated

from fastapi import Depends, Request

from powertick_db.core.config.settings import Settings, get_settings
from powertick_db.core.resilience.connection_manager import (
    ResilientConnectionManager,
    get_connection_manager,
)


def get_manager(request: Request) -> ResilientConnectionManager:
    """
    Retrieve the connection manager from application state.

    Falls back to the process-wide instance when the lifespan did not run
    (e.g. a hosting runtime mounting the routers without our app factory).
    """
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        manager = get_connection_manager()
        request.app.state.connection_manager = manager
    return manager


def get_app_settings(request: Request) -> Settings:
    """Settings stored on the app by ``create_app()``, or the global settings."""
    return getattr(request.app.state, "settings", None) or get_settings()


ManagerDep = Annotated[ResilientConnectionManager, Depends(get_manager)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
