"""
Unit Tests for RetryPolicy and transient error classification

Tests the backoff schedule, the retryable/permanent split for driver,
network and core errors, and the tenacity loop built by the policy.
"""

import asyncio
import errno
import socket

import asyncpg
import pytest

from powertick_db.core.config.settings import Settings
from powertick_db.core.exceptions import (
    AcquisitionTimeoutError,
    CircuitOpenError,
    ConnectionPoolError,
    InvalidQueryError,
    PoolClosedError,
    PoolInitializationError,
    QueryExecutionError,
)
from powertick_db.core.resilience.retry_policy import (
    RetryPolicy,
    is_authentication_error,
    is_retryable_error,
)


@pytest.mark.unit
class TestBackoff:
    """Test suite for delay computation."""

    def test_exponential_schedule_without_jitter(self, retry_policy):
        assert [retry_policy.compute_delay(n) for n in range(5)] == [0.5, 1.0, 2.0, 4.0, 4.0]

    def test_jitter_is_added_within_bound(self):
        policy = RetryPolicy(initial_delay=0.5, max_delay=4.0, jitter=1.0, random_source=lambda a, b: b)

        assert policy.compute_delay(0) == pytest.approx(1.5)
        assert policy.compute_delay(10) == pytest.approx(5.0)

    def test_jitter_uses_zero_lower_bound(self):
        calls = []

        def source(a, b):
            calls.append((a, b))
            return 0.25

        policy = RetryPolicy(jitter=1.0, random_source=source)
        policy.compute_delay(1)

        assert calls == [(0, 1.0)]

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            RETRY_MAX_ATTEMPTS=5,
            RETRY_BASE_DELAY=0.1,
            RETRY_MAX_DELAY=2.0,
            RETRY_JITTER=0.0,
        )

        policy = RetryPolicy.from_settings(settings)

        assert policy.max_attempts == 5
        assert policy.initial_delay == 0.1
        assert policy.max_delay == 2.0
        assert policy.jitter == 0.0

    def test_should_retry_respects_max_attempts(self, retry_policy):
        error = ConnectionResetError(errno.ECONNRESET, "reset")

        assert retry_policy.should_retry(error, 1) is True
        assert retry_policy.should_retry(error, 3) is False
        assert retry_policy.should_retry(ValueError("nope"), 1) is False


@pytest.mark.unit
class TestRetryableClassification:
    """Test suite for is_retryable_error."""

    @pytest.mark.parametrize(
        "error",
        [
            asyncio.TimeoutError(),
            ConnectionResetError(errno.ECONNRESET, "Connection reset by peer"),
            ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused"),
            OSError(errno.EHOSTUNREACH, "No route to host"),
            socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution"),
            asyncpg.exceptions.TooManyConnectionsError("sorry, too many clients already"),
            asyncpg.exceptions.DeadlockDetectedError("deadlock detected"),
            asyncpg.exceptions.AdminShutdownError("terminating connection due to administrator command"),
            asyncpg.exceptions.ConnectionDoesNotExistError("connection does not exist"),
            Exception("server closed the connection unexpectedly"),
            AcquisitionTimeoutError("pool exhausted"),
        ],
        ids=lambda e: type(e).__name__,
    )
    def test_transient_errors(self, error):
        assert is_retryable_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            asyncpg.exceptions.PostgresSyntaxError('syntax error at or near "SELEC"'),
            asyncpg.exceptions.UniqueViolationError("duplicate key value"),
            asyncpg.exceptions.InvalidPasswordError("password authentication failed"),
            ValueError("bad value"),
            InvalidQueryError("empty query"),
            PoolClosedError("shut down"),
            PoolInitializationError("could not build pool"),
        ],
        ids=lambda e: type(e).__name__,
    )
    def test_permanent_errors(self, error):
        assert is_retryable_error(error) is False

    def test_none_is_not_retryable(self):
        assert is_retryable_error(None) is False

    def test_circuit_open_is_never_retried(self):
        error = CircuitOpenError("open")
        error.retryable = True

        assert is_retryable_error(error) is False

    def test_explicit_flag_wins(self):
        assert is_retryable_error(QueryExecutionError("reset", retryable=True)) is True
        assert is_retryable_error(QueryExecutionError("syntax", retryable=False)) is False
        assert is_retryable_error(ConnectionPoolError("refused", retryable=True)) is True

    def test_sqlstate_from_details(self):
        error = Exception("wrapped")
        error.details = {"sqlstate": "08006"}

        assert is_retryable_error(error) is True


@pytest.mark.unit
class TestAuthenticationClassification:
    def test_invalid_password(self):
        assert is_authentication_error(asyncpg.exceptions.InvalidPasswordError("denied")) is True

    def test_found_through_cause(self):
        wrapper = ConnectionPoolError("Failed to acquire connection")
        wrapper.__cause__ = asyncpg.exceptions.InvalidAuthorizationSpecificationError("no role")

        assert is_authentication_error(wrapper) is True

    def test_other_errors(self):
        assert is_authentication_error(ConnectionResetError()) is False
        assert is_authentication_error(None) is False


@pytest.mark.unit
class TestRetryLoop:
    """Test suite for the tenacity loop built by RetryPolicy.retrying()."""

    @staticmethod
    async def _run(policy, outcomes):
        calls = 0
        async for attempt in policy.retrying("test_operation"):
            with attempt:
                calls += 1
                outcome = outcomes.pop(0)
                if isinstance(outcome, BaseException):
                    raise outcome
                result = outcome
        return result, calls

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, retry_policy, recording_sleep):
        outcomes = [
            ConnectionResetError(errno.ECONNRESET, "reset"),
            ConnectionResetError(errno.ECONNRESET, "reset"),
            "ok",
        ]

        result, calls = await self._run(retry_policy, outcomes)

        assert result == "ok"
        assert calls == 3
        assert recording_sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self, retry_policy, recording_sleep):
        with pytest.raises(asyncpg.exceptions.PostgresSyntaxError):
            await self._run(retry_policy, [asyncpg.exceptions.PostgresSyntaxError("syntax"), "ok"])

        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_last_error_reraised_when_attempts_exhausted(self, retry_policy, recording_sleep):
        errors = [asyncio.TimeoutError(), asyncio.TimeoutError(), ConnectionRefusedError("last")]

        with pytest.raises(ConnectionRefusedError, match="last"):
            await self._run(retry_policy, errors)

        assert recording_sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, recording_sleep):
        policy = RetryPolicy(max_attempts=1, jitter=0.0, sleep=recording_sleep)

        with pytest.raises(asyncio.TimeoutError):
            await self._run(policy, [asyncio.TimeoutError(), "ok"])

        assert recording_sleep.delays == []
