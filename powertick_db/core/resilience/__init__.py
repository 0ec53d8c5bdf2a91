"""
Resilience Module - Database Access Core

ARCHITECTURE:
=============
ResilientConnectionManager (connection_manager.py)
    - Owns the one asyncpg pool of the process
    - Wraps every acquisition/query in the layers below

CircuitBreaker (circuit_breaker.py)
    - CLOSED / OPEN / HALF_OPEN, shared by every operation
    - Health checks bypass it

RetryPolicy (retry_policy.py)
    - tenacity loop, exponential backoff + jitter
    - is_retryable_error(): transient vs permanent classification

ManagedIdentityTokenCache (token_cache.py)
    - Azure access token used as database password outside "local"

PoolEventEmitter (pool_events.py)
    - Hook list for pool lifecycle events, structlog subscriber

lifecycle.py
    - Process start time for cold start detection
"""

from .circuit_breaker import CircuitBreaker
from .connection_manager import (
    HealthCheckResult,
    QueryResult,
    ResilientConnectionManager,
    get_connection_manager,
    initialize_connection_manager,
)
from .lifecycle import process_start_time
from .pool_events import PoolEventEmitter, StructlogEventSink
from .retry_policy import RetryPolicy, is_authentication_error, is_retryable_error
from .token_cache import ManagedIdentityTokenCache

__all__ = [
    # Connection manager
    "ResilientConnectionManager",
    "QueryResult",
    "HealthCheckResult",
    "get_connection_manager",
    "initialize_connection_manager",
    # Circuit Breaker
    "CircuitBreaker",
    # Retry
    "RetryPolicy",
    "is_retryable_error",
    "is_authentication_error",
    # Credentials
    "ManagedIdentityTokenCache",
    # Events
    "PoolEventEmitter",
    "StructlogEventSink",
    # Lifecycle
    "process_start_time",
]
