"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.
"""

from typing import Any


class PowertickError(Exception):
    """
    Base exception for all database core errors.

    All custom exceptions inherit from this class to enable:
    - Consistent error handling in the query handlers
    - Correlation ID propagation
    - Structured error logging
    - Rich context for debugging (operation, duration, cause)

    Attributes:
        message: Error message
        correlation_id: Correlation ID of the failed operation (if available)
        details: Additional error details (dict)

    Example:
        raise AcquisitionTimeoutError(
            "No connection available within 30.0s",
            correlation_id="3f2a...",
            details={"operation": "acquire_connection", "duration_ms": 30001.2}
        )
    """

    code = "POWERTICK_ERROR"

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.correlation_id = correlation_id
        self.details = (details or {}).copy()  # Create a copy to prevent external modification
        super().__init__(self.message)

    @property
    def operation(self) -> str | None:
        """Name of the manager operation that failed, if recorded."""
        return self.details.get("operation")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, code, message, correlation_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "PowertickError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        correlation_str = f", correlation_id='{self.correlation_id}'" if self.correlation_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{correlation_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        correlation_id: str | None = None,
        **details
    ) -> "PowertickError":
        """
        Create an error from another exception.

        Useful for wrapping driver exceptions with additional context. The
        caller is still expected to chain with ``raise ... from exc``.

        Example:
            >>> try:
            ...     await pool.acquire(timeout=30)
            ... except asyncio.TimeoutError as e:
            ...     raise AcquisitionTimeoutError.from_exception(
            ...         e, operation="acquire_connection", timeout=30
            ...     ) from e
        """
        error_message = message or str(exc) or exc.__class__.__name__
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, correlation_id=correlation_id, details=error_details)


class ConfigurationError(PowertickError):
    """Raised when configuration is invalid or missing."""

    code = "CONFIGURATION_ERROR"
