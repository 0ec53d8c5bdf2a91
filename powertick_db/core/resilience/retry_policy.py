"""
Retry policy and transient error classification.

``RetryPolicy`` bundles the three decisions of a retry loop (how many
attempts, how long to wait, which errors qualify) into one object that builds
a tenacity ``AsyncRetrying`` loop. The sleep function and the random source
are injectable so the policy can be tested without real timers.

Backoff for 0-based attempt n:

    delay = min(initial_delay * 2**n, max_delay) + uniform(0, jitter)

Usage:
    policy = RetryPolicy.from_settings(get_settings())

    async for attempt in policy.retrying("execute_query"):
        with attempt:
            result = await run_once()
"""

import asyncio
import random
import socket
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import asyncpg
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from powertick_db.core.config.constants import (
    AUTHENTICATION_SQLSTATE_CLASS,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_JITTER,
    RETRY_MAX_DELAY,
    RETRYABLE_ERRNOS,
    RETRYABLE_MESSAGE_FRAGMENTS,
    RETRYABLE_SQLSTATE_CLASSES,
    RETRYABLE_SQLSTATES,
    Stage,
)
from powertick_db.core.exceptions import (
    CircuitOpenError,
    PoolClosedError,
    ValidationError,
)
from powertick_db.core.logging.logger import get_logger

logger = get_logger(__name__)

_AUTH_ERRORS = (
    asyncpg.exceptions.InvalidPasswordError,
    asyncpg.exceptions.InvalidAuthorizationSpecificationError,
)


def _sqlstate_of(exc: BaseException) -> str | None:
    sqlstate = getattr(exc, "sqlstate", None)
    if isinstance(sqlstate, str) and sqlstate:
        return sqlstate
    details = getattr(exc, "details", None)
    if isinstance(details, dict) and isinstance(details.get("sqlstate"), str):
        return details["sqlstate"]
    return None


def is_authentication_error(exc: BaseException | None) -> bool:
    """True for rejected credentials (SQLSTATE class 28), also through ``__cause__``."""
    while exc is not None:
        if isinstance(exc, _AUTH_ERRORS):
            return True
        sqlstate = _sqlstate_of(exc)
        if sqlstate and sqlstate.startswith(AUTHENTICATION_SQLSTATE_CLASS):
            return True
        exc = exc.__cause__
    return False


def is_retryable_error(exc: BaseException | None) -> bool:
    """
    Classify an error as transient (worth retrying) or permanent.

    Checked in order:
    1. Circuit-open, validation and shutdown errors are never retried.
    2. An explicit ``retryable`` attribute wins (set by the core's own errors).
    3. Timeouts are transient.
    4. DNS failures and network errno codes (reset, refused, timed out, ...).
    5. SQLSTATE: authentication (28xxx) never, connection class 08 and the
       fixed transient set (too many clients, deadlock, ...) always.
    6. Known transient message fragments.
    """
    if exc is None:
        return False

    if isinstance(exc, (CircuitOpenError, ValidationError, PoolClosedError)):
        return False

    explicit = getattr(exc, "retryable", None)
    if isinstance(explicit, bool):
        return explicit

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True

    if isinstance(exc, socket.gaierror):
        return True

    if isinstance(exc, OSError) and exc.errno in RETRYABLE_ERRNOS:
        return True

    if isinstance(exc, ConnectionError):
        return True

    if is_authentication_error(exc):
        return False

    sqlstate = _sqlstate_of(exc)
    if sqlstate:
        if sqlstate in RETRYABLE_SQLSTATES or sqlstate[:2] in RETRYABLE_SQLSTATE_CLASSES:
            return True

    message = str(exc).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGE_FRAGMENTS)


@dataclass
class RetryPolicy:
    """
    Max attempts + backoff function + retryable predicate.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Backoff before the second attempt (seconds)
        max_delay: Cap of the exponential part (seconds)
        jitter: Upper bound of the random component added to each delay
        retryable: Predicate deciding which exceptions are retried
        sleep: Awaitable sleep used between attempts
        random_source: ``uniform(a, b)``-compatible random function
    """

    max_attempts: int = MAX_RETRIES
    initial_delay: float = RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY
    jitter: float = RETRY_JITTER
    retryable: Callable[[BaseException], bool] = is_retryable_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)
    random_source: Callable[[float, float], float] = field(default=random.uniform, repr=False)

    @classmethod
    def from_settings(cls, settings, **overrides) -> "RetryPolicy":
        retry = settings.retry
        params = {
            "max_attempts": retry.RETRY_MAX_ATTEMPTS,
            "initial_delay": retry.RETRY_BASE_DELAY,
            "max_delay": retry.RETRY_MAX_DELAY,
            "jitter": retry.RETRY_JITTER,
        }
        params.update(overrides)
        return cls(**params)

    def compute_delay(self, attempt: int) -> float:
        """Delay to wait after the given 0-based failed attempt."""
        delay = min(self.initial_delay * (2 ** attempt), self.max_delay)
        if self.jitter > 0:
            delay += self.random_source(0, self.jitter)
        return delay

    def should_retry(self, exc: BaseException, attempts_made: int) -> bool:
        """True when ``exc`` is retryable and attempts remain."""
        return attempts_made < self.max_attempts and self.retryable(exc)

    def retrying(self, operation: str = "operation") -> AsyncRetrying:
        """
        Build a tenacity retry loop for one logical operation.

        Non-retryable errors are re-raised on the first attempt without
        sleeping; the last error is re-raised when attempts run out.
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.retryable),
            before_sleep=self._before_sleep(operation),
            sleep=self.sleep,
            reraise=True,
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.compute_delay(retry_state.attempt_number - 1)

    def _before_sleep(self, operation: str) -> Callable[[RetryCallState], None]:
        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"{operation} failed, retrying in {delay * 1000:.0f}ms",
                stage=Stage.RETRY,
                operation=operation,
                attempt=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                delay_ms=round(delay * 1000, 1),
                error=str(exc) if exc else None,
                error_type=type(exc).__name__ if exc else None,
            )

        return log_retry

