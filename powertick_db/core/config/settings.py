#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the database access core.
The connection variables keep the libpq names (PGHOST, PGDATABASE, PGPORT,
PGUSER, PGPASSWORD) so the same environment works for psql and for the API.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from powertick_db.core.config.constants import (
    APPLICATION_NAME_PREFIX,
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
    CIRCUIT_BREAKER_THRESHOLD,
    COLD_START_WINDOW,
    DEFAULT_CONNECTION_TIMEOUT,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_MAX_CONNECTION_LIFETIME,
    DEFAULT_PG_PORT,
    DEFAULT_POOL_MAX_SIZE,
    DEFAULT_POOL_MIN_SIZE,
    DEFAULT_QUERY_TIMEOUT,
    DEFAULT_STATEMENT_TIMEOUT,
    LOCAL_ENVIRONMENT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_JITTER,
    RETRY_MAX_DELAY,
    TOKEN_REFRESH_MARGIN,
)


class DatabaseSettings(BaseSettings):
    """
    PostgreSQL connection configuration.

    STAGE-0.1: Database connection configuration

    PGPASSWORD is only used when ENVIRONMENT is "local"; every other
    environment authenticates with an Azure managed identity token.
    """

    PGHOST: str | None = Field(default=None, description="PostgreSQL server host")
    PGDATABASE: str | None = Field(default=None, description="Database name")
    PGPORT: int = Field(default=DEFAULT_PG_PORT, description="PostgreSQL server port")
    PGUSER: str | None = Field(default=None, description="Database user")
    PGPASSWORD: str | None = Field(default=None, description="Static password (local only)")
    AZURE_CLIENT_ID: str | None = Field(
        default=None, description="Client id of a user-assigned managed identity"
    )
    DB_SSL: bool = Field(default=True, description="Use TLS for database connections")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class PoolSettings(BaseSettings):
    """
    Connection pool sizing and timeouts.

    STAGE-0.2: Pool configuration
    """

    DB_POOL_MAX: int = Field(default=DEFAULT_POOL_MAX_SIZE, ge=1, description="Maximum pool size")
    DB_POOL_MIN: int = Field(default=DEFAULT_POOL_MIN_SIZE, ge=0, description="Warm connections")
    DB_IDLE_TIMEOUT: float = Field(default=DEFAULT_IDLE_TIMEOUT, description="Idle release (s)")
    DB_MAX_LIFETIME: float = Field(
        default=DEFAULT_MAX_CONNECTION_LIFETIME, description="Connection lifetime cap (s)"
    )
    DB_CONNECTION_TIMEOUT: float = Field(
        default=DEFAULT_CONNECTION_TIMEOUT, description="Acquisition timeout (s)"
    )
    DB_STATEMENT_TIMEOUT: float = Field(
        default=DEFAULT_STATEMENT_TIMEOUT, description="Server-side statement timeout (s)"
    )
    DB_QUERY_TIMEOUT: float = Field(default=DEFAULT_QUERY_TIMEOUT, description="Per-query timeout (s)")
    COLD_START_WINDOW: float = Field(default=COLD_START_WINDOW, description="Cold start window (s)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CircuitBreakerSettings(BaseSettings):
    """
    Circuit breaker configuration for fault tolerance.

    STAGE-CB: Circuit breaker thresholds
    """

    CB_FAILURE_THRESHOLD: int = Field(
        default=CIRCUIT_BREAKER_THRESHOLD, description="Failures before opening circuit"
    )
    CB_RECOVERY_TIMEOUT: float = Field(
        default=CIRCUIT_BREAKER_RECOVERY_TIMEOUT, description="Seconds before attempting recovery"
    )
    CB_HALF_OPEN_MAX_CALLS: int = Field(
        default=CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS, description="Trial calls while half-open"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RetrySettings(BaseSettings):
    """
    Retry/backoff configuration.

    STAGE-R: Retry configuration
    """

    RETRY_MAX_ATTEMPTS: int = Field(default=MAX_RETRIES, ge=1, description="Attempts per operation")
    RETRY_BASE_DELAY: float = Field(default=RETRY_BASE_DELAY, description="Initial backoff (s)")
    RETRY_MAX_DELAY: float = Field(default=RETRY_MAX_DELAY, description="Backoff cap (s)")
    RETRY_JITTER: float = Field(default=RETRY_JITTER, description="Max random jitter (s)")
    TOKEN_REFRESH_MARGIN: float = Field(
        default=TOKEN_REFRESH_MARGIN, description="Refresh tokens this long before expiry (s)"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log output format (json or console)")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: str = Field(default=LOCAL_ENVIRONMENT, description="Deployment environment")
    APP_NAME: str = Field(default="Powertick DB Core", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from powertick_db.core.config.settings import get_settings

        settings = get_settings()
        host = settings.database.PGHOST
        threshold = settings.circuit_breaker.CB_FAILURE_THRESHOLD
    """

    # Database settings
    PGHOST: str | None = Field(default=None, description="PostgreSQL server host")
    PGDATABASE: str | None = Field(default=None, description="Database name")
    PGPORT: int = Field(default=DEFAULT_PG_PORT, description="PostgreSQL server port")
    PGUSER: str | None = Field(default=None, description="Database user")
    PGPASSWORD: str | None = Field(default=None, description="Static password (local only)")
    AZURE_CLIENT_ID: str | None = Field(
        default=None, description="Client id of a user-assigned managed identity"
    )
    DB_SSL: bool = Field(default=True, description="Use TLS for database connections")

    # Pool settings
    DB_POOL_MAX: int = Field(default=DEFAULT_POOL_MAX_SIZE, ge=1, description="Maximum pool size")
    DB_POOL_MIN: int = Field(default=DEFAULT_POOL_MIN_SIZE, ge=0, description="Warm connections")
    DB_IDLE_TIMEOUT: float = Field(default=DEFAULT_IDLE_TIMEOUT, description="Idle release (s)")
    DB_MAX_LIFETIME: float = Field(
        default=DEFAULT_MAX_CONNECTION_LIFETIME, description="Connection lifetime cap (s)"
    )
    DB_CONNECTION_TIMEOUT: float = Field(
        default=DEFAULT_CONNECTION_TIMEOUT, description="Acquisition timeout (s)"
    )
    DB_STATEMENT_TIMEOUT: float = Field(
        default=DEFAULT_STATEMENT_TIMEOUT, description="Server-side statement timeout (s)"
    )
    DB_QUERY_TIMEOUT: float = Field(default=DEFAULT_QUERY_TIMEOUT, description="Per-query timeout (s)")
    COLD_START_WINDOW: float = Field(default=COLD_START_WINDOW, description="Cold start window (s)")

    # Circuit Breaker settings
    CB_FAILURE_THRESHOLD: int = Field(
        default=CIRCUIT_BREAKER_THRESHOLD, description="Failures before opening circuit"
    )
    CB_RECOVERY_TIMEOUT: float = Field(
        default=CIRCUIT_BREAKER_RECOVERY_TIMEOUT, description="Seconds before attempting recovery"
    )
    CB_HALF_OPEN_MAX_CALLS: int = Field(
        default=CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS, description="Trial calls while half-open"
    )

    # Retry settings
    RETRY_MAX_ATTEMPTS: int = Field(default=MAX_RETRIES, ge=1, description="Attempts per operation")
    RETRY_BASE_DELAY: float = Field(default=RETRY_BASE_DELAY, description="Initial backoff (s)")
    RETRY_MAX_DELAY: float = Field(default=RETRY_MAX_DELAY, description="Backoff cap (s)")
    RETRY_JITTER: float = Field(default=RETRY_JITTER, description="Max random jitter (s)")
    TOKEN_REFRESH_MARGIN: float = Field(
        default=TOKEN_REFRESH_MARGIN, description="Refresh tokens this long before expiry (s)"
    )

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log output format (json or console)")

    # Application settings
    ENVIRONMENT: str = Field(default=LOCAL_ENVIRONMENT, description="Deployment environment")
    APP_NAME: str = Field(default="Powertick DB Core", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @property
    def uses_managed_identity(self) -> bool:
        """Every environment except "local" authenticates with a managed identity."""
        return self.ENVIRONMENT != LOCAL_ENVIRONMENT

    @property
    def application_name(self) -> str:
        """Application name reported to PostgreSQL (visible in pg_stat_activity)."""
        return f"{APPLICATION_NAME_PREFIX}-{self.ENVIRONMENT or 'unknown'}"

    # Nested configuration objects
    @property
    def database(self) -> 'DatabaseSettings':
        """Get database connection settings."""
        return DatabaseSettings(
            PGHOST=self.PGHOST,
            PGDATABASE=self.PGDATABASE,
            PGPORT=self.PGPORT,
            PGUSER=self.PGUSER,
            PGPASSWORD=self.PGPASSWORD,
            AZURE_CLIENT_ID=self.AZURE_CLIENT_ID,
            DB_SSL=self.DB_SSL,
        )

    @property
    def pool(self) -> 'PoolSettings':
        """Get pool settings."""
        return PoolSettings(
            DB_POOL_MAX=self.DB_POOL_MAX,
            DB_POOL_MIN=self.DB_POOL_MIN,
            DB_IDLE_TIMEOUT=self.DB_IDLE_TIMEOUT,
            DB_MAX_LIFETIME=self.DB_MAX_LIFETIME,
            DB_CONNECTION_TIMEOUT=self.DB_CONNECTION_TIMEOUT,
            DB_STATEMENT_TIMEOUT=self.DB_STATEMENT_TIMEOUT,
            DB_QUERY_TIMEOUT=self.DB_QUERY_TIMEOUT,
            COLD_START_WINDOW=self.COLD_START_WINDOW,
        )

    @property
    def circuit_breaker(self) -> 'CircuitBreakerSettings':
        """Get circuit breaker settings."""
        return CircuitBreakerSettings(
            CB_FAILURE_THRESHOLD=self.CB_FAILURE_THRESHOLD,
            CB_RECOVERY_TIMEOUT=self.CB_RECOVERY_TIMEOUT,
            CB_HALF_OPEN_MAX_CALLS=self.CB_HALF_OPEN_MAX_CALLS,
        )

    @property
    def retry(self) -> 'RetrySettings':
        """Get retry settings."""
        return RetrySettings(
            RETRY_MAX_ATTEMPTS=self.RETRY_MAX_ATTEMPTS,
            RETRY_BASE_DELAY=self.RETRY_BASE_DELAY,
            RETRY_MAX_DELAY=self.RETRY_MAX_DELAY,
            RETRY_JITTER=self.RETRY_JITTER,
            TOKEN_REFRESH_MARGIN=self.TOKEN_REFRESH_MARGIN,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
