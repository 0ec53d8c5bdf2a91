"""
Credential Exceptions

Raised while obtaining managed identity tokens used as database passwords.
"""

from typing import Any

from powertick_db.core.exceptions.base import PowertickError


class CredentialError(PowertickError):
    """
    Raised when a managed identity token cannot be obtained.

    ``retryable`` is True when the identity endpoint was unreachable (network
    failure) and False when the identity itself was rejected or unavailable.
    """

    code = "CREDENTIAL_ERROR"

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message, correlation_id=correlation_id, details=details)
        self.retryable = retryable
        self.details.setdefault("retryable", retryable)
