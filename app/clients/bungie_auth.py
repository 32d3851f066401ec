"""
Bungie.net OAuth utilities.

These helpers manage the authorization-code flow and the token refresh
lifecycle against the Bungie token endpoint.
"""

from __future__ import annotations

import base64
import hmac
import json
import logging
from hashlib import sha256
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException, status
from pydantic import ValidationError

from app.core.config import BungieSettings
from app.core.errors import InvalidGrantError, OAuthTokenExchangeError, TokenRefreshError
from app.models.oauth import TokenGrant

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


def _error_code(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("error")
    return None


class BungieOAuthClient:
    """Build Bungie authorization URLs, exchange codes and refresh tokens."""

    AUTH_PATH = "/en/OAuth/Authorize"
    TOKEN_PATH = "/platform/app/oauth/token/"

    def __init__(
        self,
        settings: BungieSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def token_url(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}{self.TOKEN_PATH}"

    def build_authorization_url(self, state: str) -> str:
        """Construct the Bungie OAuth consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "response_type": "code",
            "state": state,
        }
        if self._settings.redirect_uri:
            params["redirect_uri"] = str(self._settings.redirect_uri)
        return f"{self._settings.base_url.rstrip('/')}{self.AUTH_PATH}?{urlencode(params)}"

    async def _post_token_request(self, form: Dict[str, str]) -> httpx.Response:
        payload = {
            **form,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
        }
        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds, transport=self._transport
        ) as client:
            return await client.post(
                self.token_url,
                data=payload,
                headers={"X-API-Key": self._settings.api_key},
            )

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for an access and refresh token."""
        form = {"grant_type": "authorization_code", "code": code}
        if self._settings.redirect_uri:
            form["redirect_uri"] = str(self._settings.redirect_uri)

        try:
            response = await self._post_token_request(form)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError("Token endpoint unreachable.") from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(
                f"Code exchange rejected ({response.status_code}, {_error_code(response)})."
            )

        try:
            grant = TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Bungie.") from exc
        if not grant.refresh_token:
            raise OAuthTokenExchangeError(
                "No refresh token issued; the Bungie application must be confidential."
            )
        return grant

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Refresh the access token using a stored refresh token.

        Raises :class:`InvalidGrantError` when Bungie rejects the refresh token
        itself and :class:`TokenRefreshError` for everything else.
        """
        try:
            response = await self._post_token_request(
                {"grant_type": "refresh_token", "refresh_token": refresh_token}
            )
        except httpx.HTTPError as exc:
            raise TokenRefreshError(f"Token endpoint unreachable: {exc.__class__.__name__}.") from exc

        if response.status_code != status.HTTP_200_OK:
            error_code = _error_code(response)
            if error_code == "invalid_grant":
                raise InvalidGrantError("Refresh token rejected as invalid or expired.")
            raise TokenRefreshError(
                f"Token refresh failed ({response.status_code}, {error_code})."
            )

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TokenRefreshError("Incomplete refresh payload returned from Bungie.") from exc


__all__ = ["BungieOAuthClient", "OAuthStateEncoder"]
