"""
Helpers for keeping stored Bungie OAuth tokens fresh.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from app.core.errors import (
    CredentialStoreError,
    InvalidGrantError,
    TokenRefreshError,
)
from app.models.oauth import REFRESH_SKEW, OAuthCredential, TokenGrant
from app.models.user import UserRecord
from app.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh_token(self, refresh_token: str) -> TokenGrant: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenLifecycleManager:
    """Refreshes access tokens that are within ``skew`` of expiring."""

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: TokenRefresher,
        *,
        skew: timedelta = REFRESH_SKEW,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._skew = skew
        self._clock = clock

    async def ensure_fresh(
        self, record: UserRecord
    ) -> tuple[UserRecord, Optional[TokenRefreshError]]:
        """Return a record whose access token is usable, or the reason it is not.

        A record that is still fresh comes back untouched without a network
        call. On failure the input record is returned with the error and the
        store is left alone, except that an ``invalid_grant`` rejection
        persists the advisory re-authorization flag.
        """
        now = self._clock()
        if record.credential.is_usable(now, self._skew):
            return record, None

        refresh_token = record.credential.refresh_token
        if not refresh_token:
            return record, InvalidGrantError("No refresh token stored.")

        try:
            grant = await self._oauth.refresh_token(refresh_token)
        except InvalidGrantError as exc:
            logger.warning("Refresh token rejected", extra={"user_id": record.user_id})
            self._flag_reauthorization(record, str(exc))
            return record, exc
        except TokenRefreshError as exc:
            logger.warning(
                "Token refresh failed; skipping user this cycle",
                extra={"user_id": record.user_id, "error": str(exc)},
            )
            return record, exc

        refreshed_at = self._clock()
        fresh = record.model_copy(
            update={
                "credential": OAuthCredential.from_grant(
                    grant, issued_at=refreshed_at, previous_refresh_token=refresh_token
                ),
                "reauthorization_required": False,
                "reauthorization_reason": None,
                "updated_at": refreshed_at,
            }
        )
        try:
            self._store.put(fresh)
        except CredentialStoreError as exc:
            logger.error(
                "Refreshed token could not be persisted", extra={"user_id": record.user_id}
            )
            return record, TokenRefreshError(str(exc))

        logger.info("Refreshed token", extra={"user_id": record.user_id})
        return fresh, None

    def _flag_reauthorization(self, record: UserRecord, reason: str) -> None:
        flagged = record.model_copy(
            update={
                "reauthorization_required": True,
                "reauthorization_reason": reason,
                "updated_at": self._clock(),
            }
        )
        try:
            self._store.put(flagged)
        except CredentialStoreError:
            logger.exception(
                "Failed to flag user for re-authorization", extra={"user_id": record.user_id}
            )


__all__ = ["TokenLifecycleManager", "TokenRefresher"]
