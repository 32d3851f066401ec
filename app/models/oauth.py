"""
Domain models for OAuth credentials issued by Bungie.net.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

REFRESH_SKEW = timedelta(minutes=5)


class TokenGrant(BaseModel):
    """Token endpoint response for a code exchange or a refresh."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = Field(..., gt=0, description="Access token lifetime in seconds.")
    membership_id: Optional[str] = Field(
        None, description="Bungie.net membership id echoed by the token endpoint."
    )


class OAuthCredential(BaseModel):
    """Access and refresh tokens with the instant the access token expires."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_usable(self, now: datetime, skew: timedelta = REFRESH_SKEW) -> bool:
        """True while ``now`` is before the expiry instant minus ``skew``."""
        return now < self.expires_at - skew

    @classmethod
    def from_grant(
        cls,
        grant: TokenGrant,
        *,
        issued_at: datetime,
        previous_refresh_token: str | None = None,
    ) -> "OAuthCredential":
        """Map a token grant onto stored fields, keeping the old refresh token if none was rotated in."""
        return cls(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or previous_refresh_token,
            expires_at=issued_at + timedelta(seconds=grant.expires_in),
        )


__all__ = ["OAuthCredential", "REFRESH_SKEW", "TokenGrant"]
