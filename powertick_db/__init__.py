"""
Powertick DB - resilient PostgreSQL/TimescaleDB access core.

Usage:
    from powertick_db import get_connection_manager

    manager = get_connection_manager()
    result = await manager.execute_query(
        "SELECT * FROM measurements WHERE powermeter_id = $1", [meter_id]
    )
"""

from powertick_db.core.resilience.connection_manager import (
    HealthCheckResult,
    QueryResult,
    ResilientConnectionManager,
    get_connection_manager,
    initialize_connection_manager,
)

__version__ = "1.0.0"

__all__ = [
    "HealthCheckResult",
    "QueryResult",
    "ResilientConnectionManager",
    "get_connection_manager",
    "initialize_connection_manager",
]
