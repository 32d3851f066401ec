"""Schemas for the status, trigger and revoke endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class UserStatusResponse(BaseModel):
    authenticated: bool = Field(..., description="Whether a record exists for the user.")
    reauthorization_required: bool = Field(
        False, description="True when the stored refresh token was rejected."
    )


class TriggerResponse(BaseModel):
    status: Literal["accepted", "already_running"]


class RevokeResponse(BaseModel):
    status: Literal["revoked", "not_found"]


__all__ = ["RevokeResponse", "TriggerResponse", "UserStatusResponse"]
