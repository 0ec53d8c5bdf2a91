"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError

from powertick_db.core.config import constants
from powertick_db.core.config.settings import Settings, get_settings, reload_settings

_DB_ENV = ("PGHOST", "PGDATABASE", "PGPORT", "PGUSER", "PGPASSWORD", "ENVIRONMENT", "DB_POOL_MAX")


@pytest.fixture
def clean_env(monkeypatch):
    for name in _DB_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestSettingsDefaults:
    """Test default values."""

    def test_pool_defaults(self, clean_env):
        """Test pool sizing and timeouts match the documented defaults."""
        pool = Settings(_env_file=None).pool

        assert pool.DB_POOL_MAX == 5
        assert pool.DB_POOL_MIN == 0
        assert pool.DB_IDLE_TIMEOUT == 300.0
        assert pool.DB_CONNECTION_TIMEOUT == 30.0
        assert pool.DB_STATEMENT_TIMEOUT == 45.0
        assert pool.DB_QUERY_TIMEOUT == 20.0
        assert pool.COLD_START_WINDOW == 30.0

    def test_resilience_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.circuit_breaker.CB_FAILURE_THRESHOLD == 3
        assert settings.circuit_breaker.CB_RECOVERY_TIMEOUT == 30.0
        assert settings.circuit_breaker.CB_HALF_OPEN_MAX_CALLS == 2
        assert settings.retry.RETRY_MAX_ATTEMPTS == 3
        assert settings.retry.RETRY_BASE_DELAY == 0.5
        assert settings.retry.RETRY_MAX_DELAY == 4.0
        assert settings.retry.TOKEN_REFRESH_MARGIN == 300.0

    def test_database_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.database.PGHOST is None
        assert settings.database.PGPORT == 5432
        assert settings.database.DB_SSL is True
        assert settings.ENVIRONMENT == constants.LOCAL_ENVIRONMENT


@pytest.mark.unit
class TestEnvironmentLoading:
    """Test environment variable overrides."""

    def test_libpq_variables_loaded(self, clean_env):
        clean_env.setenv("PGHOST", "pg.internal")
        clean_env.setenv("PGPORT", "6432")
        clean_env.setenv("PGDATABASE", "powertick")
        clean_env.setenv("DB_POOL_MAX", "10")

        settings = Settings(_env_file=None)

        assert settings.database.PGHOST == "pg.internal"
        assert settings.database.PGPORT == 6432
        assert settings.pool.DB_POOL_MAX == 10

    def test_invalid_port_rejected(self, clean_env):
        clean_env.setenv("PGPORT", "not-a-port")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_pool_max_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, DB_POOL_MAX=0)

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, LOG_LEVEL="debug").logging.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="VERBOSE")


@pytest.mark.unit
class TestAuthenticationMode:
    @pytest.mark.parametrize(
        "environment, managed",
        [("local", False), ("production", True), ("dev", True), ("demo", True)],
    )
    def test_managed_identity_outside_local(self, environment, managed):
        assert Settings(_env_file=None, ENVIRONMENT=environment).uses_managed_identity is managed

    def test_application_name(self):
        assert Settings(_env_file=None, ENVIRONMENT="dev").application_name == "powertick-api-dev"


@pytest.mark.unit
class TestSettingsSingleton:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self):
        before = get_settings()

        after = reload_settings()

        assert after is not before
        assert get_settings() is after
