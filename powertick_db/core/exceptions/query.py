"""
Query Exceptions

All exceptions related to statement execution
"""

from typing import Any

from powertick_db.core.exceptions.base import PowertickError


class QueryError(PowertickError):
    """Base exception for query execution errors."""

    code = "QUERY_ERROR"


class QueryTimeoutError(QueryError):
    """
    Raised when a query exceeded the per-query timeout.

    The driver cancels the statement server-side before this is raised, so
    the connection is safe to return to the pool.
    """

    code = "QUERY_TIMEOUT"
    retryable = True


class QueryExecutionError(QueryError):
    """
    Raised when the database or driver failed a statement.

    The driver exception is chained as ``__cause__`` and its SQLSTATE (when
    there is one) is kept in ``details["sqlstate"]``. ``retryable`` records
    the classification made at the point of failure: connection resets and
    deadlocks are retryable, syntax and constraint errors are not.
    """

    code = "QUERY_EXECUTION_FAILED"

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message, correlation_id=correlation_id, details=details)
        self.retryable = retryable

    @property
    def sqlstate(self) -> str | None:
        return self.details.get("sqlstate")
