"""
Connection Pool Exception Types.

Custom exceptions for connection pool management errors.
"""

from typing import Any

from powertick_db.core.exceptions.base import PowertickError


class ConnectionPoolError(PowertickError):
    """
    Base exception for connection pool errors.

    When it wraps a driver failure, ``retryable`` carries the classification
    of the wrapped error so the retry loop does not have to unwrap it.
    """

    code = "CONNECTION_POOL_ERROR"

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message, correlation_id=correlation_id, details=details)
        if retryable is not None:
            self.retryable = retryable


class AcquisitionTimeoutError(ConnectionPoolError):
    """
    Raised when no connection became available within the connection timeout.

    Treated as transient: ``execute_query`` retries it. The pool has already
    cleaned up the pending acquisition when this is raised.
    """

    code = "ACQUISITION_TIMEOUT"
    retryable = True


class PoolInitializationError(ConnectionPoolError):
    """
    Raised when the pool could not be constructed after the retry loop.

    Common causes:
    - Managed identity token could not be obtained
    - Database host unreachable
    - Authentication rejected
    """

    code = "POOL_INITIALIZATION_FAILED"
    retryable = False


class PoolClosedError(ConnectionPoolError):
    """Raised when an operation is attempted during or after shutdown."""

    code = "POOL_CLOSED"
    retryable = False
