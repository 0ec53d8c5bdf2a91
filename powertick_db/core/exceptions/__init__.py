"""
Exception Module

Structured exception hierarchy for the database core.
All exceptions are organized by theme for better maintainability and debuggability.

Module Structure:
-----------------
- **base.py**: PowertickError base class + ConfigurationError
- **circuit_breaker.py**: Circuit breaker exceptions
- **connection_pool.py**: Pool construction / acquisition exceptions
- **credentials.py**: Managed identity token exceptions
- **query.py**: Statement execution exceptions
- **validation.py**: Bad input to the core itself

Usage:
------
```python
from powertick_db.core.exceptions import CircuitOpenError, AcquisitionTimeoutError

try:
    result = await manager.execute_query(sql, params)
except CircuitOpenError:
    ...  # database is down, answer 503
```
"""

from powertick_db.core.exceptions.base import ConfigurationError, PowertickError
from powertick_db.core.exceptions.circuit_breaker import CircuitBreakerError, CircuitOpenError
from powertick_db.core.exceptions.connection_pool import (
    AcquisitionTimeoutError,
    ConnectionPoolError,
    PoolClosedError,
    PoolInitializationError,
)
from powertick_db.core.exceptions.credentials import CredentialError
from powertick_db.core.exceptions.query import (
    QueryError,
    QueryExecutionError,
    QueryTimeoutError,
)
from powertick_db.core.exceptions.validation import (
    InvalidIdentifierError,
    InvalidQueryError,
    ValidationError,
)

__all__ = [
    # Base
    "PowertickError",
    "ConfigurationError",
    # Circuit Breaker
    "CircuitBreakerError",
    "CircuitOpenError",
    # Connection Pool
    "ConnectionPoolError",
    "AcquisitionTimeoutError",
    "PoolInitializationError",
    "PoolClosedError",
    # Credentials
    "CredentialError",
    # Query
    "QueryError",
    "QueryTimeoutError",
    "QueryExecutionError",
    # Validation
    "ValidationError",
    "InvalidQueryError",
    "InvalidIdentifierError",
]
