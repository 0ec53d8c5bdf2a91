"""
Circuit Breaker for the PostgreSQL connection pool.

MECHANISM OF ACTION:
-------------------
1.  **Process-wide State**:
    One breaker guards every database operation of the process. The failure
    counter is shared: a failed acquisition, a failed query and a failed
    pool construction all increment the same counter.

2.  **State Transitions**:
    - **CLOSED**: The database is healthy. Requests are allowed.
      - On Failure: Failure counter increments.
      - On Success: Failure counter resets to 0.
      - Threshold Reached: failures >= threshold -> OPEN.

    - **OPEN**: The database is considered down. Requests are rejected
      immediately (fail fast, no I/O).
      - Recovery: once ``recovery_timeout`` seconds have elapsed since the last
        failure, the next request moves the breaker to HALF-OPEN.

    - **HALF-OPEN**: Probing mode.
      - Behavior: Lets at most ``half_open_max_calls`` trial requests through.
      - On Success: State transitions back to CLOSED, counter reset.
      - On Failure: State transitions back to OPEN and the cooldown restarts.

3.  **Concurrency**:
    All methods are synchronous and never await, so on a single event loop
    every read-modify-write of the state is atomic with respect to other
    coroutines.

Health checks never consult the breaker, so monitoring keeps probing the
database while application traffic is being rejected.
"""

import time
from collections.abc import Callable

from powertick_db.core.config.constants import (
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
    CIRCUIT_BREAKER_THRESHOLD,
    CircuitState,
    PoolEvent,
    Stage,
)
from powertick_db.core.exceptions import CircuitOpenError
from powertick_db.core.logging.logger import get_logger
from powertick_db.core.resilience.pool_events import PoolEventEmitter

logger = get_logger(__name__)


class CircuitBreaker:
    """
    In-process three-state circuit breaker.

    Args:
        failure_threshold: Consecutive failures that open the circuit
        recovery_timeout: Seconds after the last failure before a probe is allowed
        half_open_max_calls: Trial requests admitted while HALF_OPEN
        clock: Monotonic time source (injectable for tests)
        events: Emitter that receives STATE_CHANGE events
        name: Label used in logs
    """

    def __init__(
        self,
        failure_threshold: int = CIRCUIT_BREAKER_THRESHOLD,
        recovery_timeout: float = CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
        half_open_max_calls: int = CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
        clock: Callable[[], float] = time.monotonic,
        events: PoolEventEmitter | None = None,
        name: str = "postgresql",
    ):
        self.name = name
        self._max_failures = failure_threshold
        self._reset_timeout = recovery_timeout
        self._half_open_max_calls = half_open_max_calls
        self._clock = clock
        self._events = events

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._half_open_calls = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    @property
    def failure_threshold(self) -> int:
        return self._max_failures

    @property
    def recovery_timeout(self) -> float:
        return self._reset_timeout

    def get_state(self) -> CircuitState:
        """Current state without triggering the OPEN -> HALF_OPEN transition."""
        return self._state

    def seconds_until_retry(self) -> float:
        """Remaining cooldown while OPEN, 0.0 otherwise."""
        if self._state is not CircuitState.OPEN or self._last_failure_time is None:
            return 0.0
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self._reset_timeout - elapsed)

    def should_allow_request(self) -> bool:
        """
        Decide whether a request may proceed.

        Logic:
        1. CLOSED -> allow.
        2. OPEN and cooldown elapsed -> move to HALF_OPEN and admit as a trial.
        3. OPEN and cooldown pending -> block.
        4. HALF_OPEN -> admit while trial slots remain.
        """
        if self._state is CircuitState.CLOSED:
            return True

        if self._state is CircuitState.OPEN:
            if self.seconds_until_retry() > 0:
                return False
            self._transition(CircuitState.HALF_OPEN, reason="recovery timeout elapsed")

        if self._half_open_calls < self._half_open_max_calls:
            self._half_open_calls += 1
            return True
        return False

    def check(self, operation: str = "request", correlation_id: str | None = None) -> None:
        """
        Raise ``CircuitOpenError`` when the request is not allowed.

        Raises:
            CircuitOpenError: breaker is OPEN (or HALF_OPEN with no trial slots left)
        """
        if self.should_allow_request():
            return

        retry_after = round(self.seconds_until_retry(), 3)
        logger.warning(
            "Request blocked by circuit breaker",
            stage=Stage.CIRCUIT_REJECT,
            operation=operation,
            circuit_state=self._state.value,
            failure_count=self._failure_count,
            retry_after_s=retry_after,
        )
        raise CircuitOpenError(
            "Circuit breaker is open - database operations temporarily disabled",
            correlation_id=correlation_id,
            details={
                "operation": operation,
                "circuit": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "retry_after_s": retry_after,
            },
        )

    def record_success(self) -> None:
        """
        Called when a logical operation succeeds.

        Action:
        - HALF_OPEN -> CLOSED.
        - Reset failure counter to 0.
        """
        self._failure_count = 0
        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED, reason="trial request succeeded")

    def record_failure(self) -> None:
        """
        Called when a logical operation fails (after retries are exhausted).

        Action:
        - Increment failure counter and stamp the failure time.
        - HALF_OPEN -> OPEN (cooldown restarts).
        - CLOSED with counter >= threshold -> OPEN.
        """
        self._failure_count += 1
        self._last_failure_time = self._clock()

        logger.warning(
            f"Circuit '{self.name}' recorded failure ({self._failure_count}/{self._max_failures})",
            stage=Stage.CIRCUIT_TRANSITION,
            circuit_state=self._state.value,
            failure_count=self._failure_count,
        )

        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN, reason="trial request failed")
        elif self._state is CircuitState.CLOSED and self._failure_count >= self._max_failures:
            self._transition(CircuitState.OPEN, reason="failure threshold reached")

    def reset(self) -> None:
        """Administrative override: force CLOSED and zero the counter."""
        previous = self._state
        self._failure_count = 0
        self._last_failure_time = None
        self._half_open_calls = 0
        self._state = CircuitState.CLOSED

        logger.warning(
            "Circuit breaker manually reset",
            stage=Stage.CIRCUIT_TRANSITION,
            action="manual_reset",
            previous_state=previous.value,
        )
        if previous is not CircuitState.CLOSED:
            self._emit_transition(previous, CircuitState.CLOSED, reason="manual reset")

    def stats(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self._max_failures,
            "recovery_timeout_s": self._reset_timeout,
            "retry_after_s": round(self.seconds_until_retry(), 3),
        }

    def _transition(self, new_state: CircuitState, reason: str) -> None:
        previous = self._state
        if previous is new_state:
            return
        self._state = new_state
        self._half_open_calls = 0
        self._emit_transition(previous, new_state, reason)

    def _emit_transition(self, previous: CircuitState, new_state: CircuitState, reason: str) -> None:
        if self._events is not None:
            self._events.emit(
                PoolEvent.STATE_CHANGE,
                circuit=self.name,
                from_state=previous.value,
                to_state=new_state.value,
                failure_count=self._failure_count,
                reason=reason,
                outcome="transition",
            )
        else:
            logger.info(
                f"Circuit '{self.name}' changed state to {new_state.value}",
                stage=Stage.CIRCUIT_TRANSITION,
                from_state=previous.value,
                reason=reason,
            )
