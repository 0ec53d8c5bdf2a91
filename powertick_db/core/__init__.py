"""
Core Module

Foundational components: configuration, logging, exceptions, resilience
and SQL identifier resolution.
"""

from .exceptions import (
    AcquisitionTimeoutError,
    CircuitOpenError,
    ConfigurationError,
    CredentialError,
    PoolInitializationError,
    PowertickError,
    QueryExecutionError,
    QueryTimeoutError,
    ValidationError,
)
from .logging import (
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_stage,
    set_correlation_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "log_stage",
    "PowertickError",
    "ConfigurationError",
    "CircuitOpenError",
    "AcquisitionTimeoutError",
    "PoolInitializationError",
    "CredentialError",
    "QueryExecutionError",
    "QueryTimeoutError",
    "ValidationError",
]
