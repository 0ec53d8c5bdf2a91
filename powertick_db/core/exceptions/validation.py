"""
Validation Exceptions

Bad input handed to the database core itself. Never retried and never
recorded against the circuit breaker.
"""

from powertick_db.core.exceptions.base import PowertickError


class ValidationError(PowertickError):
    """
    Raised when input validation fails.

    This is the base class for all validation-related errors.
    """

    code = "VALIDATION_ERROR"
    retryable = False


class InvalidQueryError(ValidationError):
    """
    Raised when a query is malformed before it reaches the database.

    Common causes:
    - Empty or whitespace-only query text
    - Query that is not a string
    - Parameters that are not a sequence
    """

    code = "INVALID_QUERY"


class InvalidIdentifierError(ValidationError):
    """Raised when a schema, table or time bucket is not in the allow-list."""

    code = "INVALID_IDENTIFIER"
