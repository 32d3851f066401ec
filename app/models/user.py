"""
The per-user record kept by the credential store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.oauth import OAuthCredential


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(BaseModel):
    """An authorized player and the credential used on their behalf."""

    user_id: str = Field(..., min_length=1, description="Bungie.net membership id.")
    credential: OAuthCredential
    membership_type: int = Field(..., description="Destiny platform membership type.")
    membership_id: str = Field(..., description="Destiny platform membership id.")
    characters: List[str] = Field(
        default_factory=list,
        description="Character ids known at authorization time; may be stale.",
    )
    display_name: Optional[str] = None
    reauthorization_required: bool = False
    reauthorization_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def needs_reauthorization(self) -> bool:
        """Records without a refresh token or with the advisory flag are not processed."""
        return self.reauthorization_required or not self.credential.refresh_token


__all__ = ["UserRecord"]
