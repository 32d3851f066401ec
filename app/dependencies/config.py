"""
FastAPI dependency utilities for injecting configuration and guarding
operator endpoints.
"""

import hmac
from functools import lru_cache
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException

from app.core.config import AppSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def require_admin_token(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    x_admin_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """Reject the request unless it carries the configured admin token."""
    expected = settings.security.admin_api_token
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=HTTPStatus.FORBIDDEN, detail="Invalid admin token.")


__all__ = ["get_app_settings", "require_admin_token"]
