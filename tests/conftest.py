"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import errno
import os
import sys
from unittest.mock import AsyncMock

import pytest
from azure.core.credentials import AccessToken

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from powertick_db.core.config.settings import Settings  # noqa: E402
from powertick_db.core.resilience.circuit_breaker import CircuitBreaker  # noqa: E402
from powertick_db.core.resilience.connection_manager import ResilientConnectionManager  # noqa: E402
from powertick_db.core.resilience.pool_events import PoolEventEmitter  # noqa: E402
from powertick_db.core.resilience.retry_policy import RetryPolicy  # noqa: E402
from powertick_db.core.resilience.token_cache import ManagedIdentityTokenCache  # noqa: E402
from tests.test_fixtures import FakeClock, FakePoolFactory, RecordingSleep  # noqa: E402

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Local (static password) settings that ignore any .env file."""
    return Settings(
        _env_file=None,
        PGHOST="db.test.local",
        PGDATABASE="powertick",
        PGPORT=5432,
        PGUSER="powertick_api",
        PGPASSWORD="local-secret",
        ENVIRONMENT="local",
        DB_SSL=False,
    )


@pytest.fixture
def managed_identity_settings():
    """Cloud settings: the database password is a managed identity token."""
    return Settings(
        _env_file=None,
        PGHOST="powertick.postgres.database.azure.com",
        PGDATABASE="powertick",
        PGPORT=5432,
        PGUSER="powertick-api-identity",
        ENVIRONMENT="production",
        AZURE_CLIENT_ID="00000000-0000-0000-0000-000000000001",
    )


# ============================================================================
# Fake Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def pool_factory():
    return FakePoolFactory()


@pytest.fixture
def events():
    return PoolEventEmitter()


@pytest.fixture
def captured_events(events):
    """List of (event, payload) tuples published to the emitter."""
    captured = []
    events.subscribe(lambda event, payload: captured.append((event, dict(payload))))
    return captured


@pytest.fixture
def breaker(fake_clock, events):
    return CircuitBreaker(
        failure_threshold=3,
        recovery_timeout=30.0,
        half_open_max_calls=2,
        clock=fake_clock,
        events=events,
    )


@pytest.fixture
def retry_policy(recording_sleep):
    """Production backoff schedule without jitter and without real sleeping."""
    return RetryPolicy(
        max_attempts=3,
        initial_delay=0.5,
        max_delay=4.0,
        jitter=0.0,
        sleep=recording_sleep,
    )


@pytest.fixture
def fake_credential():
    """Async credential returning a token valid for one hour of ``fake_wall_clock``."""
    credential = AsyncMock()
    credential.get_token = AsyncMock(return_value=AccessToken("eyJ.fake.token", 1_000_000 + 3600))
    credential.close = AsyncMock()
    return credential


@pytest.fixture
def fake_wall_clock():
    return FakeClock(start=1_000_000.0)


@pytest.fixture
def token_cache(fake_credential, fake_wall_clock):
    return ManagedIdentityTokenCache(
        credential=fake_credential,
        refresh_margin=300.0,
        clock=fake_wall_clock,
    )


@pytest.fixture
def manager(test_settings, breaker, retry_policy, events, pool_factory, fake_clock):
    """Connection manager wired to fakes; the process is inside its cold-start window."""
    return ResilientConnectionManager(
        settings=test_settings,
        circuit_breaker=breaker,
        retry_policy=retry_policy,
        events=events,
        pool_factory=pool_factory,
        clock=fake_clock,
        started_at=fake_clock(),
    )


@pytest.fixture
def connection_refused():
    """Factory for the OS error a stopped database produces."""

    def make():
        return ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")

    return make
