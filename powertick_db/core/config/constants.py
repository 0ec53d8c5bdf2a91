"""
System Constants and Enumerations

This module defines the defaults, enumerations and error classification
tables used across the database access core.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for pool sizes, timeouts and thresholds
- Type-safe enums for breaker and pool state
- Retryable error tables live next to the other tuning knobs

All durations are in seconds unless the name says otherwise.
"""

import errno
from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage`` key of log events.

    Format: {PREFIX}.{SEQUENCE}_{DESCRIPTIVE_NAME}

    Examples:
        stage=Stage.POOL_INIT            -> "DB.1_POOL_INIT"
        stage=Stage.CIRCUIT_TRANSITION   -> "CB.1_CIRCUIT_TRANSITION"
    """

    # Connection manager lifecycle
    POOL_INIT = "DB.1_POOL_INIT"
    ACQUIRE = "DB.2_ACQUIRE"
    QUERY = "DB.3_QUERY"
    RELEASE = "DB.4_RELEASE"
    HEALTH_CHECK = "DB.5_HEALTH_CHECK"
    PRE_WARM = "DB.6_PRE_WARM"
    SHUTDOWN = "DB.7_SHUTDOWN"

    # Cross-cutting concerns
    CIRCUIT_TRANSITION = "CB.1_CIRCUIT_TRANSITION"
    CIRCUIT_REJECT = "CB.2_CIRCUIT_REJECT"
    RETRY = "R.1_RETRY"
    TOKEN_REFRESH = "T.1_TOKEN_REFRESH"
    POOL_EVENT = "E.1_POOL_EVENT"


# ============================================================================
# Circuit Breaker States
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, requests allowed
    OPEN: Failing fast, requests blocked
    HALF_OPEN: Testing recovery, limited requests
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class PoolStatus(str, Enum):
    """Lifecycle status reported by ``get_metrics()``."""

    NOT_INITIALIZED = "not_initialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


class PoolEvent(str, Enum):
    """Pool lifecycle events published to ``PoolEventEmitter`` subscribers."""

    CONNECT = "connect"
    ACQUIRE = "acquire"
    RELEASE = "release"
    REMOVE = "remove"
    ERROR = "error"
    QUERY = "query"
    STATE_CHANGE = "state_change"
    POOL_CREATED = "pool_created"
    POOL_CLOSED = "pool_closed"
    HEALTH_CHECK = "health_check"


# ============================================================================
# Connection Pool Defaults
# ============================================================================

# Small pool: many short-lived invocations share one process-wide pool
DEFAULT_POOL_MAX_SIZE = 5
DEFAULT_POOL_MIN_SIZE = 0

DEFAULT_IDLE_TIMEOUT = 300.0          # 5 minutes
DEFAULT_MAX_CONNECTION_LIFETIME = 3600.0  # rotate connections hourly
DEFAULT_CONNECTION_TIMEOUT = 30.0
DEFAULT_STATEMENT_TIMEOUT = 45.0
DEFAULT_QUERY_TIMEOUT = 20.0

DEFAULT_PG_PORT = 5432
APPLICATION_NAME_PREFIX = "powertick-api"

# Queries slower than this are logged at WARNING level
SLOW_QUERY_THRESHOLD = 1.0

# Logged query text is truncated to this many characters
QUERY_LOG_PREVIEW_CHARS = 100

POOL_TEST_QUERY = "SELECT NOW() AS current_time, version() AS pg_version"
HEALTH_CHECK_QUERY = "SELECT 1 AS alive"

# ============================================================================
# Cold Start / Health Check
# ============================================================================

COLD_START_WINDOW = 30.0
HEALTH_CHECK_TIMEOUT_COLD = 5.0
HEALTH_CHECK_TIMEOUT_WARM = 8.0

# ============================================================================
# Circuit Breaker
# ============================================================================

CIRCUIT_BREAKER_THRESHOLD = 3
CIRCUIT_BREAKER_RECOVERY_TIMEOUT = 30.0
CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS = 2

# ============================================================================
# Retry Configuration
# ============================================================================

MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5
RETRY_MAX_DELAY = 4.0
RETRY_JITTER = 1.0

# ============================================================================
# Managed Identity
# ============================================================================

AZURE_POSTGRES_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"
TOKEN_REFRESH_MARGIN = 300.0

# Environment value that selects static password authentication
LOCAL_ENVIRONMENT = "local"

# ============================================================================
# Retryable Error Classification
# ============================================================================

RETRYABLE_ERRNOS = frozenset({
    errno.ECONNRESET,
    errno.ECONNREFUSED,
    errno.ETIMEDOUT,
    errno.EPIPE,
    errno.ECONNABORTED,
    errno.ENETUNREACH,
    errno.EHOSTUNREACH,
})

# SQLSTATE class prefixes that are always transient (08 = connection exception)
RETRYABLE_SQLSTATE_CLASSES = frozenset({"08"})

RETRYABLE_SQLSTATES = frozenset({
    "53300",  # too_many_connections
    "57P01",  # admin_shutdown
    "57P02",  # crash_shutdown
    "57P03",  # cannot_connect_now
    "40P01",  # deadlock_detected
    "40001",  # serialization_failure
    "57014",  # query_canceled (statement_timeout)
})

# SQLSTATE class 28 = invalid authorization specification / bad password
AUTHENTICATION_SQLSTATE_CLASS = "28"

RETRYABLE_MESSAGE_FRAGMENTS = (
    "connection terminated",
    "connection closed",
    "connection is closed",
    "server closed the connection",
    "timeout expired",
    "too many clients",
    "database is starting up",
    "temporary failure",
    "deadlock detected",
)

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_CORRELATION_ID = "X-Correlation-ID"
HEADER_API_VERSION = "X-API-Version"
HEADER_ENVIRONMENT = "X-Environment"
