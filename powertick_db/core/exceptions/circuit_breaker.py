"""
Circuit Breaker Exceptions

All exceptions related to circuit breaker operations
"""

from powertick_db.core.exceptions.base import PowertickError


class CircuitBreakerError(PowertickError):
    """Base exception for circuit breaker errors."""

    code = "CIRCUIT_BREAKER_ERROR"


class CircuitOpenError(CircuitBreakerError):
    """
    Raised when the circuit breaker is open (fail fast).

    The database is considered down: the request was rejected without any
    network I/O. Callers should answer "service unavailable" instead of
    treating this as a failure of their specific query.

    The circuit will transition to half-open once the recovery timeout has
    elapsed since the last failure, at which point trial requests are let
    through.
    """

    code = "CIRCUIT_OPEN"
