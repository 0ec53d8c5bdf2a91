"""
Resilient Connection Manager for PostgreSQL / TimescaleDB.

This module owns the one asyncpg pool of the process and everything that
keeps it usable:
- Lazy pool construction with retry (or eager, via pre-warm)
- Circuit breaker guarding acquisition and query execution
- Retry with exponential backoff + jitter for transient errors
- Managed identity tokens as database passwords outside "local"
- Cold-start aware health checks that bypass the breaker
- Graceful, idempotent shutdown

STAGE-DB: Database Access
-------------------------
DB.1: Pool initialization
DB.2: Connection acquisition
DB.3: Query execution
DB.4: Connection release
DB.5: Health check
DB.6: Pre-warm
DB.7: Shutdown

Breaker accounting: one logical operation records one outcome. The
individual attempts of a retried ``execute_query`` are not fed to the
breaker; exhausting the attempts records a single failure and a success
after retries records a success.
"""

import asyncio
import time
import weakref
from collections.abc import Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import Any

import asyncpg

from powertick_db.core.config.constants import (
    HEALTH_CHECK_QUERY,
    HEALTH_CHECK_TIMEOUT_COLD,
    HEALTH_CHECK_TIMEOUT_WARM,
    POOL_TEST_QUERY,
    QUERY_LOG_PREVIEW_CHARS,
    SLOW_QUERY_THRESHOLD,
    PoolEvent,
    PoolStatus,
    Stage,
)
from powertick_db.core.config.settings import Settings, get_settings
from powertick_db.core.exceptions import (
    AcquisitionTimeoutError,
    ConnectionPoolError,
    InvalidQueryError,
    PoolClosedError,
    PoolInitializationError,
    PowertickError,
    QueryExecutionError,
    QueryTimeoutError,
)
from powertick_db.core.logging.logger import ensure_correlation_id, get_logger
from powertick_db.core.resilience.lifecycle import process_start_time
from powertick_db.core.resilience.circuit_breaker import CircuitBreaker
from powertick_db.core.resilience.pool_events import PoolEventEmitter, StructlogEventSink
from powertick_db.core.resilience.retry_policy import (
    RetryPolicy,
    is_authentication_error,
    is_retryable_error,
)
from powertick_db.core.resilience.token_cache import ManagedIdentityTokenCache

logger = get_logger(__name__)

PoolFactory = Callable[..., Awaitable[Any]]


@dataclass
class QueryResult:
    """Rows of a statement plus the row count reported by the server."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    command: str | None = None

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


@dataclass
class HealthCheckResult:
    healthy: bool
    latency_ms: float
    cold_start: bool
    timeout: float
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _ms_since(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _raw_connection(conn):
    """The asyncpg Connection behind a pool proxy."""
    return getattr(conn, "_con", None) or conn


def _preview(query: str) -> str:
    text = " ".join(query.split())
    if len(text) <= QUERY_LOG_PREVIEW_CHARS:
        return text
    return text[:QUERY_LOG_PREVIEW_CHARS] + "..."


def _parse_status(status: str | None, fetched: int) -> tuple[str | None, int]:
    """Split a command tag such as ``"INSERT 0 3"`` into command and row count."""
    if not status:
        return None, fetched
    parts = status.split()
    command = parts[0].upper()
    if len(parts) > 1 and parts[-1].isdigit():
        return command, int(parts[-1])
    return command, fetched


class ResilientConnectionManager:
    """
    Process-wide owner of the PostgreSQL pool, circuit breaker and token cache.

    STAGE-DB.0: Connection Manager Initialization

    Construct one per process (see ``get_connection_manager()``); tests build
    fresh instances with fake collaborators.

    Args:
        settings: Configuration; the global settings when omitted
        circuit_breaker: Breaker shared by every operation of this manager
        retry_policy: Retry policy for pool construction and ``execute_query``
        token_cache: Managed identity token cache (created automatically
            outside "local")
        events: Pool event emitter; a structured-log subscriber is attached
            when omitted
        pool_factory: ``asyncpg.create_pool`` compatible coroutine function
        clock: Monotonic clock for cold-start detection and connection age
        started_at: Process start on ``clock``'s time scale
    """

    def __init__(
        self,
        settings: Settings | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        token_cache: ManagedIdentityTokenCache | None = None,
        events: PoolEventEmitter | None = None,
        pool_factory: PoolFactory = asyncpg.create_pool,
        clock: Callable[[], float] = time.monotonic,
        started_at: float | None = None,
    ):
        self._settings = settings or get_settings()
        self._pool_settings = self._settings.pool

        if events is None:
            events = PoolEventEmitter()
            events.subscribe(StructlogEventSink())
        self._events = events

        cb = self._settings.circuit_breaker
        self._breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=cb.CB_FAILURE_THRESHOLD,
            recovery_timeout=cb.CB_RECOVERY_TIMEOUT,
            half_open_max_calls=cb.CB_HALF_OPEN_MAX_CALLS,
            events=events,
        )
        self._retry_policy = retry_policy or RetryPolicy.from_settings(self._settings)

        if token_cache is None and self._settings.uses_managed_identity:
            token_cache = ManagedIdentityTokenCache(
                refresh_margin=self._settings.retry.TOKEN_REFRESH_MARGIN,
                client_id=self._settings.AZURE_CLIENT_ID,
            )
        self._token_cache = token_cache

        self._pool_factory = pool_factory
        self._clock = clock
        self._started_at = process_start_time() if started_at is None else started_at

        self._pool = None
        self._closed = False
        self._pool_lock = asyncio.Lock()
        self._shutdown_lock = asyncio.Lock()
        self._prewarm_task: asyncio.Task | None = None

        # Occupancy not exposed by asyncpg
        self._waiting = 0
        self._in_use = 0
        # raw connection -> connect time, for the lifetime cap; entries go
        # away with connections asyncpg closes on its own
        self._connected_at: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

        logger.info(
            "Connection manager initialized",
            stage="DB.0",
            environment=self._settings.ENVIRONMENT,
            managed_identity=self._settings.uses_managed_identity,
            max_size=self._pool_settings.DB_POOL_MAX,
            min_size=self._pool_settings.DB_POOL_MIN,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def events(self) -> PoolEventEmitter:
        return self._events

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def uptime(self) -> float:
        return max(0.0, self._clock() - self._started_at)

    def is_cold_start(self) -> bool:
        """True while the process is inside its cold-start window."""
        return self.uptime() < self._pool_settings.COLD_START_WINDOW

    # =========================================================================
    # Connection acquisition / release
    # =========================================================================

    async def acquire_connection(self):
        """
        Acquire a pooled connection.

        STAGE-DB.2: Connection Acquisition

        The caller must hand the connection back with ``release_connection()``
        exactly once. Prefer the ``connection()`` context manager.

        Raises:
            CircuitOpenError: breaker rejected the request (no I/O performed)
            AcquisitionTimeoutError: no connection within DB_CONNECTION_TIMEOUT
            PoolInitializationError: pool could not be built after retries
            PoolClosedError: manager has been shut down
        """
        correlation_id = ensure_correlation_id()
        self._breaker.check("acquire_connection", correlation_id)
        try:
            return await self._acquire("acquire_connection")
        except PoolClosedError:
            raise
        except Exception:
            self._breaker.record_failure()
            raise

    async def release_connection(self, conn, error: BaseException | None = None) -> None:
        """
        Return a connection to the pool.

        STAGE-DB.4: Connection Release

        With ``error`` the breaker records a failure and the connection is
        terminated instead of being reused; without it the breaker records
        a success. Double release is not guarded against.
        """
        try:
            await self._release(conn, error)
        finally:
            if error is None:
                self._breaker.record_success()
            else:
                self._breaker.record_failure()

    @asynccontextmanager
    async def connection(self):
        """
        Acquire/release pair for multi-statement work.

        Usage:
            async with manager.connection() as conn:
                async with conn.transaction():
                    await conn.execute(...)
        """
        conn = await self.acquire_connection()
        try:
            yield conn
        except BaseException as e:
            await self.release_connection(conn, e)
            raise
        else:
            await self.release_connection(conn)

    async def _acquire(self, operation: str):
        pool = await self._ensure_pool()
        timeout = self._pool_settings.DB_CONNECTION_TIMEOUT

        started = time.perf_counter()
        self._waiting += 1
        try:
            conn = await pool.acquire(timeout=timeout)
        except (asyncio.TimeoutError, TimeoutError) as e:
            self._emit_failure(PoolEvent.ACQUIRE, started, e, operation=operation)
            raise AcquisitionTimeoutError(
                f"No connection available within {timeout}s",
                details={
                    "operation": operation,
                    "timeout": timeout,
                    "duration_ms": _ms_since(started),
                },
            ) from e
        except Exception as e:
            if is_authentication_error(e):
                self._invalidate_token()
            self._emit_failure(PoolEvent.ACQUIRE, started, e, operation=operation)
            raise ConnectionPoolError(
                f"Failed to acquire connection: {e}",
                details={
                    "operation": operation,
                    "duration_ms": _ms_since(started),
                    "original_error": type(e).__name__,
                },
                retryable=is_retryable_error(e),
            ) from e
        finally:
            self._waiting -= 1

        self._in_use += 1
        self._events.emit(
            PoolEvent.ACQUIRE,
            operation=operation,
            duration_ms=_ms_since(started),
            outcome="success",
            **self._occupancy(),
        )
        return conn

    async def _release(self, conn, error: BaseException | None = None) -> None:
        pool = self._pool
        started = time.perf_counter()
        retire_reason = "error" if error is not None else self._lifetime_exceeded(conn)

        try:
            if retire_reason:
                self._retire(conn, retire_reason)
            if pool is not None:
                await pool.release(conn)
            else:
                # Pool already closed by shutdown
                conn.terminate()
        except Exception as e:
            self._emit_failure(PoolEvent.RELEASE, started, e)
            raise
        finally:
            self._in_use = max(0, self._in_use - 1)

        payload = {"duration_ms": _ms_since(started), **self._occupancy()}
        if error is not None:
            payload.update(outcome="failure", error=str(error), error_type=type(error).__name__)
        else:
            payload["outcome"] = "success"
        self._events.emit(PoolEvent.RELEASE, **payload)

    def _lifetime_exceeded(self, conn) -> str | None:
        connected_at = self._connected_at.get(_raw_connection(conn))
        if connected_at is None:
            return None
        if self._clock() - connected_at >= self._pool_settings.DB_MAX_LIFETIME:
            return "max_lifetime"
        return None

    def _retire(self, conn, reason: str) -> None:
        pid = self._server_pid(conn)
        self._connected_at.pop(_raw_connection(conn), None)
        # asyncpg reconnects the slot of a terminated connection on next acquire
        conn.terminate()
        self._events.emit(PoolEvent.REMOVE, server_pid=pid, reason=reason, outcome="retired")

    @staticmethod
    def _server_pid(conn) -> int | None:
        try:
            return conn.get_server_pid()
        except Exception:
            return None

    # =========================================================================
    # Query execution
    # =========================================================================

    async def execute_query(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        Acquire, execute, release, with retry and breaker accounting.

        STAGE-DB.3: Query Execution

        The whole acquire-execute-release cycle is retried for transient
        errors; permanent errors (syntax, constraint, auth) propagate after
        one attempt without any backoff.

        Args:
            query: SQL text with ``$1``-style placeholders
            params: Positional parameters

        Returns:
            QueryResult with rows as dicts and the server-reported row count

        Raises:
            InvalidQueryError: empty or non-string query, non-sequence params
            CircuitOpenError: breaker rejected the request
            QueryTimeoutError: the last attempt exceeded DB_QUERY_TIMEOUT
            QueryExecutionError: the database rejected the statement
            AcquisitionTimeoutError / PoolInitializationError: see acquire
        """
        self._validate_query(query, params)
        correlation_id = ensure_correlation_id()
        self._breaker.check("execute_query", correlation_id)

        started = time.perf_counter()
        attempts = 0
        try:
            async for attempt in self._retry_policy.retrying("execute_query"):
                with attempt:
                    attempts += 1
                    result = await self._execute_once(query, params)
        except PoolClosedError:
            raise
        except Exception as e:
            self._breaker.record_failure()
            if isinstance(e, PowertickError):
                e.correlation_id = e.correlation_id or correlation_id
                e.with_context(attempts=attempts, total_duration_ms=_ms_since(started))
            raise

        self._breaker.record_success()
        if attempts > 1:
            logger.info(
                f"Query succeeded after {attempts} attempts",
                stage=Stage.QUERY,
                attempts=attempts,
                duration_ms=_ms_since(started),
            )
        return result

    async def query(self, query: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        Run a statement on a pooled connection without retry or breaker accounting.

        Slow statements are logged as warnings.
        """
        self._validate_query(query, params)
        pool = await self._ensure_pool()
        conn = await pool.acquire(timeout=self._pool_settings.DB_CONNECTION_TIMEOUT)
        try:
            return await self._run(conn, query, params, operation="query")
        finally:
            await pool.release(conn)

    async def _execute_once(self, query: str, params: Sequence[Any]) -> QueryResult:
        conn = await self._acquire("execute_query")
        try:
            result = await self._run(conn, query, params, operation="execute_query")
        except BaseException as e:
            await self._release(conn, e)
            raise
        await self._release(conn)
        return result

    async def _run(self, conn, query: str, params: Sequence[Any], operation: str) -> QueryResult:
        timeout = self._pool_settings.DB_QUERY_TIMEOUT
        preview = _preview(query)
        started = time.perf_counter()

        try:
            stmt = await conn.prepare(query, timeout=timeout)
            records = await stmt.fetch(*params, timeout=timeout)
        except (asyncio.TimeoutError, TimeoutError) as e:
            self._emit_failure(PoolEvent.QUERY, started, e, operation=operation, query=preview)
            raise QueryTimeoutError(
                f"Query exceeded {timeout}s timeout",
                details={
                    "operation": operation,
                    "timeout": timeout,
                    "duration_ms": _ms_since(started),
                    "query": preview,
                },
            ) from e
        except Exception as e:
            if is_authentication_error(e):
                self._invalidate_token()
            self._emit_failure(PoolEvent.QUERY, started, e, operation=operation, query=preview)
            details = {
                "operation": operation,
                "duration_ms": _ms_since(started),
                "query": preview,
                "original_error": type(e).__name__,
            }
            sqlstate = getattr(e, "sqlstate", None)
            if sqlstate:
                details["sqlstate"] = sqlstate
            raise QueryExecutionError(
                f"Query failed: {e}", details=details, retryable=is_retryable_error(e)
            ) from e

        rows = [dict(record) for record in records]
        command, row_count = _parse_status(stmt.get_statusmsg(), len(rows))
        duration_ms = _ms_since(started)
        slow = duration_ms > SLOW_QUERY_THRESHOLD * 1000

        payload = {
            "operation": operation,
            "duration_ms": duration_ms,
            "row_count": row_count,
            "outcome": "success",
        }
        if slow:
            payload.update(slow=True, query=preview)
        self._events.emit(PoolEvent.QUERY, **payload)

        return QueryResult(rows=rows, row_count=row_count, command=command)

    @staticmethod
    def _validate_query(query: Any, params: Any) -> None:
        if not isinstance(query, str) or not query.strip():
            raise InvalidQueryError(
                "Query must be a non-empty string",
                details={"operation": "execute_query", "query_type": type(query).__name__},
            )
        if isinstance(params, (str, bytes)) or not isinstance(params, Sequence):
            raise InvalidQueryError(
                "Query parameters must be a list or tuple",
                details={"operation": "execute_query", "params_type": type(params).__name__},
            )

    # =========================================================================
    # Health check / pre-warm
    # =========================================================================

    async def health_check(self) -> HealthCheckResult:
        """
        Probe the database, ignoring the circuit breaker.

        STAGE-DB.5: Health Check

        Inside the cold-start window the probe (including pool construction
        when there is no pool yet) gets the shorter cold timeout.
        """
        cold_start = self.is_cold_start()
        timeout = HEALTH_CHECK_TIMEOUT_COLD if cold_start else HEALTH_CHECK_TIMEOUT_WARM
        started = time.perf_counter()
        error = None

        try:
            await asyncio.wait_for(self._probe(timeout), timeout=timeout)
        except (asyncio.TimeoutError, TimeoutError):
            error = f"Health check timed out after {timeout}s"
        except Exception as e:
            error = str(e) or type(e).__name__

        result = HealthCheckResult(
            healthy=error is None,
            latency_ms=_ms_since(started),
            cold_start=cold_start,
            timeout=timeout,
            error=error,
        )
        self._events.emit(
            PoolEvent.HEALTH_CHECK,
            duration_ms=result.latency_ms,
            cold_start=cold_start,
            outcome="success" if result.healthy else "failure",
            error=error,
        )
        return result

    async def _probe(self, timeout: float) -> None:
        pool = await self._ensure_pool()
        conn = await pool.acquire(timeout=timeout)
        try:
            await conn.fetchval(HEALTH_CHECK_QUERY, timeout=timeout)
        finally:
            await pool.release(conn)

    def pre_warm(self) -> asyncio.Task | None:
        """
        Start pool construction in the background during a cold start.

        STAGE-DB.6: Pre-warm

        Returns the background task, or None when there is nothing to do
        (pool exists, manager closed, or process already warm). Never raises;
        a failed background construction is only logged.
        """
        if self._pool is not None or self._closed or not self.is_cold_start():
            return None
        if self._prewarm_task is not None and not self._prewarm_task.done():
            return self._prewarm_task

        logger.info(
            "Pre-warming connection pool",
            stage=Stage.PRE_WARM,
            uptime_s=round(self.uptime(), 2),
        )
        task = asyncio.get_running_loop().create_task(self._ensure_pool())
        task.add_done_callback(self._on_prewarm_done)
        self._prewarm_task = task
        return task

    @staticmethod
    def _on_prewarm_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                f"Pre-warm failed: {exc}",
                stage=Stage.PRE_WARM,
                error=str(exc),
                error_type=type(exc).__name__,
                outcome="failure",
            )
        else:
            logger.info("Pre-warm completed", stage=Stage.PRE_WARM, outcome="success")

    # =========================================================================
    # Pool construction
    # =========================================================================

    async def _ensure_pool(self):
        """
        Return the pool, building it on first use.

        STAGE-DB.1: Pool Initialization

        Construction is serialized; concurrent first callers wait for the
        one in progress.
        """
        if self._pool is not None:
            return self._pool
        self._check_open()

        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            self._check_open()

            started = time.perf_counter()
            attempts = 0
            try:
                async for attempt in self._retry_policy.retrying("pool_init"):
                    with attempt:
                        attempts += 1
                        pool = await self._create_pool()
            except Exception as e:
                if is_authentication_error(e):
                    self._invalidate_token()
                self._emit_failure(PoolEvent.ERROR, started, e, operation="pool_init", attempts=attempts)
                raise PoolInitializationError(
                    f"Connection pool initialization failed: {e}",
                    details={
                        "operation": "pool_init",
                        "attempts": attempts,
                        "duration_ms": _ms_since(started),
                        "original_error": type(e).__name__,
                    },
                ) from e

            if self._closed:
                await pool.close()
                raise PoolClosedError(
                    "Connection manager was shut down during pool initialization",
                    details={"operation": "pool_init"},
                )

            self._pool = pool
            self._events.emit(
                PoolEvent.POOL_CREATED,
                duration_ms=_ms_since(started),
                attempts=attempts,
                max_size=self._pool_settings.DB_POOL_MAX,
                min_size=self._pool_settings.DB_POOL_MIN,
                environment=self._settings.ENVIRONMENT,
                outcome="success",
            )
            return pool

    async def _create_pool(self):
        settings = self._settings
        pool_settings = self._pool_settings

        if settings.uses_managed_identity:
            # Fail before construction if no token can be obtained
            await self._token_cache.get_token()
            password = self._token_cache.get_token
        else:
            password = settings.PGPASSWORD

        pool = await self._pool_factory(
            host=settings.PGHOST,
            port=settings.PGPORT,
            user=settings.PGUSER,
            password=password,
            database=settings.PGDATABASE,
            min_size=pool_settings.DB_POOL_MIN,
            max_size=pool_settings.DB_POOL_MAX,
            max_inactive_connection_lifetime=pool_settings.DB_IDLE_TIMEOUT,
            command_timeout=pool_settings.DB_QUERY_TIMEOUT,
            timeout=pool_settings.DB_CONNECTION_TIMEOUT,
            ssl="require" if settings.DB_SSL else None,
            server_settings={
                "application_name": settings.application_name,
                "statement_timeout": str(int(pool_settings.DB_STATEMENT_TIMEOUT * 1000)),
            },
            init=self._on_connect,
        )

        try:
            conn = await pool.acquire(timeout=pool_settings.DB_CONNECTION_TIMEOUT)
            try:
                await conn.fetchrow(POOL_TEST_QUERY)
            finally:
                await pool.release(conn)
        except BaseException:
            pool.terminate()
            raise
        return pool

    async def _on_connect(self, conn) -> None:
        pid = conn.get_server_pid()
        self._connected_at[conn] = self._clock()
        self._events.emit(PoolEvent.CONNECT, server_pid=pid, outcome="success")

    def _invalidate_token(self) -> None:
        if self._token_cache is not None:
            self._token_cache.invalidate()

    def _check_open(self) -> None:
        if self._closed:
            raise PoolClosedError(
                "Connection manager is shut down",
                details={"operation": "acquire_connection"},
            )

    # =========================================================================
    # Observability / administration
    # =========================================================================

    def get_metrics(self) -> dict[str, Any]:
        """Pool occupancy plus circuit breaker state."""
        if self._closed:
            status = PoolStatus.CLOSED
        elif self._pool is None:
            status = PoolStatus.NOT_INITIALIZED
        else:
            status = PoolStatus.INITIALIZED

        return {
            "status": status.value,
            **self._occupancy(),
            "circuit_breaker_state": self._breaker.state.value,
            "circuit_breaker_failure_count": self._breaker.failure_count,
        }

    def reset_circuit_breaker(self) -> dict[str, Any]:
        """Force the breaker CLOSED with a zero failure counter."""
        previous = self._breaker.stats()
        self._breaker.reset()
        return {"previous": previous, "current": self._breaker.stats()}

    def _occupancy(self) -> dict[str, int]:
        pool = self._pool
        if pool is None:
            total = idle = 0
        else:
            total = pool.get_size()
            idle = pool.get_idle_size()
        return {
            "total_count": total,
            "idle_count": idle,
            "waiting_count": self._waiting,
            "in_use_count": self._in_use,
            "max_size": self._pool_settings.DB_POOL_MAX,
        }

    def _emit_failure(self, event: PoolEvent, started: float, exc: BaseException, **payload) -> None:
        self._events.emit(
            event,
            duration_ms=_ms_since(started),
            outcome="failure",
            error=str(exc),
            error_type=type(exc).__name__,
            **payload,
        )

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """
        Close the pool. Safe to call repeatedly and concurrently.

        STAGE-DB.7: Shutdown

        Close errors are logged and the pool is terminated instead.
        """
        async with self._shutdown_lock:
            if self._closed:
                return
            self._closed = True
            started = time.perf_counter()

            task = self._prewarm_task
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

            pool, self._pool = self._pool, None
            if pool is not None:
                try:
                    await asyncio.wait_for(
                        pool.close(), timeout=self._pool_settings.DB_CONNECTION_TIMEOUT
                    )
                except Exception as e:
                    logger.error(
                        f"Error closing connection pool: {e}",
                        stage=Stage.SHUTDOWN,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    pool.terminate()

            self._connected_at.clear()
            if self._token_cache is not None:
                await self._token_cache.close()

            self._events.emit(
                PoolEvent.POOL_CLOSED,
                duration_ms=_ms_since(started),
                had_pool=pool is not None,
                outcome="success",
            )


# Global instance
_connection_manager: ResilientConnectionManager | None = None


def get_connection_manager() -> ResilientConnectionManager:
    """
    Get the process-wide connection manager, creating it on first use.

    Returns:
        ResilientConnectionManager: Global instance
    """
    global _connection_manager

    if _connection_manager is None:
        _connection_manager = ResilientConnectionManager()

    return _connection_manager


def initialize_connection_manager(
    settings: Settings | None = None, **kwargs
) -> ResilientConnectionManager:
    """
    Replace the process-wide connection manager.

    Args:
        settings: Configuration for the new manager
        **kwargs: Forwarded to ``ResilientConnectionManager``

    Returns:
        ResilientConnectionManager: Initialized instance
    """
    global _connection_manager

    _connection_manager = ResilientConnectionManager(settings=settings, **kwargs)

    return _connection_manager
