"""
Operational HTTP surface of the database core.

Routers a hosting runtime can mount: ``/ping``, ``/health``,
``/admin/metrics`` and ``/admin/reset-circuit-breaker``.
"""

from .routes import admin_router, health_router

__all__ = ["admin_router", "health_router"]
