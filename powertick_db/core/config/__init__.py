"""
Configuration Module

Centralized, type-safe configuration management for the database core.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Defaults, enums and error classification tables

Usage:
------
```python
from powertick_db.core.config import get_settings
from powertick_db.core.config.constants import CircuitState

settings = get_settings()
host = settings.database.PGHOST
state = CircuitState.CLOSED
```

Environment Variables:
---------------------
```bash
PGHOST=myserver.postgres.database.azure.com
PGDATABASE=powertick
PGPORT=5432
PGUSER=powertick-api
PGPASSWORD=...          # only read when ENVIRONMENT=local
ENVIRONMENT=production
AZURE_CLIENT_ID=...     # optional user-assigned identity

CB_FAILURE_THRESHOLD=3
CB_RECOVERY_TIMEOUT=30
```
"""

from powertick_db.core.config.constants import (
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
    CIRCUIT_BREAKER_THRESHOLD,
    COLD_START_WINDOW,
    HEADER_CORRELATION_ID,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    CircuitState,
    PoolEvent,
    PoolStatus,
    Stage,
)
from powertick_db.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CircuitState",
    "PoolEvent",
    "PoolStatus",
    # Thresholds
    "CIRCUIT_BREAKER_THRESHOLD",
    "CIRCUIT_BREAKER_RECOVERY_TIMEOUT",
    "CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS",
    "COLD_START_WINDOW",
    # Retry
    "MAX_RETRIES",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    # HTTP headers
    "HEADER_CORRELATION_ID",
]
