"""
Managed identity token cache.

In every environment except "local" the database password is an Entra ID
access token for the Azure Database for PostgreSQL resource. Tokens live
about an hour; this cache hands out the current one and fetches a new one
synchronously (for the caller) when it is missing or within the refresh
margin of its expiry.

The cache is also handed to asyncpg as the ``password`` callable, so every
new physical connection gets a token that is valid at connect time even
after the pool has outlived the token it was built with.
"""

import asyncio
import time
from collections.abc import Callable

from azure.core.exceptions import ClientAuthenticationError, ServiceRequestError
from azure.identity.aio import DefaultAzureCredential

from powertick_db.core.config.constants import AZURE_POSTGRES_SCOPE, TOKEN_REFRESH_MARGIN, Stage
from powertick_db.core.exceptions import CredentialError
from powertick_db.core.logging.logger import get_logger

logger = get_logger(__name__)


class ManagedIdentityTokenCache:
    """
    Process-wide cache of one access token.

    Args:
        credential: Async azure-identity credential; a ``DefaultAzureCredential``
            is created lazily on first use when omitted
        scope: Token scope requested from the identity authority
        refresh_margin: Seconds before expiry at which the token counts as stale
        client_id: Client id of a user-assigned managed identity
        clock: Wall-clock time source in epoch seconds (token expiries are epoch)
    """

    def __init__(
        self,
        credential=None,
        scope: str = AZURE_POSTGRES_SCOPE,
        refresh_margin: float = TOKEN_REFRESH_MARGIN,
        client_id: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._credential = credential
        self._owns_credential = credential is None
        self._scope = scope
        self._refresh_margin = refresh_margin
        self._client_id = client_id
        self._clock = clock

        self._token: str | None = None
        self._expires_on: float | None = None
        self._lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def expires_on(self) -> float | None:
        return self._expires_on

    @property
    def refresh_count(self) -> int:
        """Number of successful fetches from the identity authority."""
        return self._refresh_count

    def is_fresh(self) -> bool:
        """True when a token is cached and not within the refresh margin of expiry."""
        if not self._token or self._expires_on is None:
            return False
        return self._clock() < self._expires_on - self._refresh_margin

    def invalidate(self) -> None:
        """Drop the cached token so the next ``get_token()`` fetches a new one."""
        if self._token is not None:
            logger.info("Cached access token invalidated", stage=Stage.TOKEN_REFRESH)
        self._token = None
        self._expires_on = None

    async def get_token(self) -> str:
        """
        Return a token that is valid for at least the refresh margin.

        Concurrent callers share one refresh.

        Raises:
            CredentialError: token could not be obtained; ``retryable`` is set
                for network-level failures reaching the identity endpoint
        """
        if self.is_fresh():
            return self._token

        async with self._lock:
            # Another coroutine may have refreshed while we waited
            if self.is_fresh():
                return self._token
            return await self._refresh()

    async def __call__(self) -> str:
        return await self.get_token()

    async def close(self) -> None:
        """Close the credential if this cache created it."""
        if self._credential is not None and self._owns_credential:
            await self._credential.close()
            self._credential = None

    async def _refresh(self) -> str:
        if self._credential is None:
            self._credential = DefaultAzureCredential(managed_identity_client_id=self._client_id)

        logger.info("Requesting new Azure access token", stage=Stage.TOKEN_REFRESH)
        started = time.perf_counter()

        try:
            access_token = await self._credential.get_token(self._scope)
        except ServiceRequestError as e:
            raise self._failure(e, started, retryable=True) from e
        except (ConnectionError, asyncio.TimeoutError) as e:
            raise self._failure(e, started, retryable=True) from e
        except ClientAuthenticationError as e:
            raise self._failure(e, started, retryable=False) from e

        if not access_token or not access_token.token:
            raise CredentialError(
                "Invalid token response from Azure Managed Identity",
                details={"operation": "get_token", "scope": self._scope},
            )

        self._token = access_token.token
        self._expires_on = float(access_token.expires_on)
        self._refresh_count += 1

        logger.info(
            "Azure access token retrieved successfully",
            stage=Stage.TOKEN_REFRESH,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            valid_for_minutes=round((self._expires_on - self._clock()) / 60),
            outcome="success",
        )
        return self._token

    def _failure(self, exc: Exception, started: float, retryable: bool) -> CredentialError:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.error(
            "Failed to retrieve Azure access token",
            stage=Stage.TOKEN_REFRESH,
            error=str(exc),
            error_type=type(exc).__name__,
            retryable=retryable,
            duration_ms=duration_ms,
            outcome="failure",
        )
        return CredentialError(
            f"Azure authentication failed: {exc}",
            details={
                "operation": "get_token",
                "scope": self._scope,
                "duration_ms": duration_ms,
                "original_error": type(exc).__name__,
            },
            retryable=retryable,
        )
