"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by Bungie.net.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class ConnectionResult(BaseModel):
    """Minimal acknowledgement of a completed authorization; never carries tokens."""

    status: str = "connected"
    user_id: str
    redirect_to: Optional[str] = None


__all__ = ["ConnectionResult", "OAuthCallbackPayload"]
