"""
Exception hierarchy shared by the clients, services and routes.

Remote failures are split into transient and permanent variants so callers can
record an outcome for the current cycle without guessing at the cause.
"""

from __future__ import annotations


class AutoVaultError(Exception):
    """Base class for errors raised by the service."""


class RemoteServiceError(AutoVaultError):
    """Raised when a Bungie platform call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_status: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_status = error_status


class TransientRemoteError(RemoteServiceError):
    """Network failure, throttling or a 5xx; the next cycle may succeed."""


class PermanentRemoteError(RemoteServiceError):
    """The platform rejected the request outright."""


class MalformedResponseError(TransientRemoteError):
    """The platform answered with a body that could not be interpreted."""


class OAuthTokenExchangeError(AutoVaultError):
    """Raised when the token endpoint rejects an authorization code."""


class TokenRefreshError(AutoVaultError):
    """Raised when refreshing an access token fails for this cycle."""


class InvalidGrantError(TokenRefreshError):
    """The token endpoint rejected the refresh token as revoked or expired."""


class CredentialStoreError(AutoVaultError):
    """Base class for credential storage failures."""


class UserNotFoundError(CredentialStoreError):
    """Raised when no record exists for the requested user."""


class CredentialStoreWriteError(CredentialStoreError):
    """Raised when a record could not be persisted."""


__all__ = [
    "AutoVaultError",
    "CredentialStoreError",
    "CredentialStoreWriteError",
    "InvalidGrantError",
    "MalformedResponseError",
    "OAuthTokenExchangeError",
    "PermanentRemoteError",
    "RemoteServiceError",
    "TokenRefreshError",
    "TransientRemoteError",
    "UserNotFoundError",
]
