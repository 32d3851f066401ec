"""
FastAPI routes for the auto-vault service.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.errors import (
    CredentialStoreError,
    OAuthTokenExchangeError,
    RemoteServiceError,
    UserNotFoundError,
)
from app.dependencies import (
    get_app_settings,
    get_batch_scheduler,
    get_bungie_oauth_client,
    get_credential_store,
    get_inventory_client,
    get_oauth_state_encoder,
    require_admin_token,
)
from app.models.oauth import OAuthCredential
from app.models.user import UserRecord
from app.schemas import (
    ConnectionResult,
    OAuthCallbackPayload,
    RevokeResponse,
    TriggerResponse,
    UserStatusResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/bungie/authorize", status_code=HTTPStatus.OK)
async def start_bungie_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_bungie_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to redirect back to on successful authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Bungie consent screen.",
    ),
) -> Any:
    """Kick off the OAuth flow by generating a state token and authorization URL."""
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


def _validate_state(state_data: dict, ttl_seconds: int, now: datetime) -> None:
    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )
    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    if now - issued_at > timedelta(seconds=ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )


@router.post("/auth/bungie/callback", status_code=HTTPStatus.OK, response_model=ConnectionResult)
async def handle_bungie_oauth_callback(
    payload: OAuthCallbackPayload,
    oauth_client: Annotated[Any, Depends(get_bungie_oauth_client)],
    inventory_client: Annotated[Any, Depends(get_inventory_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    store: Annotated[Any, Depends(get_credential_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> ConnectionResult:
    """Exchange the code, resolve the Bungie account and upsert its record."""
    state_data = state_encoder.decode(payload.state)
    now = datetime.now(timezone.utc)
    _validate_state(state_data, settings.oauth.state_ttl_seconds, now)

    try:
        grant = await oauth_client.exchange_authorization_code(payload.code)
    except OAuthTokenExchangeError as exc:
        logger.warning("Authorization code exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc

    try:
        identity = await inventory_client.get_memberships(grant.access_token)
    except RemoteServiceError as exc:
        logger.warning("Bungie identity lookup failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to resolve Bungie account.",
        ) from exc

    membership = identity.primary_membership
    if membership is None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="No Destiny 2 accounts found."
        )

    try:
        characters = await inventory_client.get_character_ids(
            grant.access_token, membership.membership_type, membership.membership_id
        )
    except RemoteServiceError as exc:
        # Characters are refreshed on every sweep, so an empty list is recoverable.
        logger.warning("Character lookup failed: %s", exc, extra={"user_id": identity.user_id})
        characters = []

    try:
        try:
            created_at = store.get(identity.user_id).created_at
        except UserNotFoundError:
            created_at = now
        store.put(
            UserRecord(
                user_id=identity.user_id,
                credential=OAuthCredential.from_grant(grant, issued_at=now),
                membership_type=membership.membership_type,
                membership_id=membership.membership_id,
                characters=characters,
                display_name=identity.display_name,
                created_at=created_at,
                updated_at=now,
            )
        )
    except CredentialStoreError as exc:
        logger.error("Failed to store authorization", extra={"user_id": identity.user_id})
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Failed to store authorization.",
        ) from exc

    logger.info("Authorized user", extra={"user_id": identity.user_id})
    return ConnectionResult(user_id=identity.user_id, redirect_to=state_data.get("redirect_to"))


@router.get("/auth/bungie/callback", status_code=HTTPStatus.OK)
async def handle_bungie_oauth_callback_get(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_bungie_oauth_client)],
    inventory_client: Annotated[Any, Depends(get_inventory_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    store: Annotated[Any, Depends(get_credential_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: str | None = Query(default=None, description="Authorization code returned by Bungie."),
    error: str | None = Query(default=None, description="Error reported by the consent screen."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    if error or not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Authorization was not granted.",
        )

    result = await handle_bungie_oauth_callback(
        payload=OAuthCallbackPayload(state=state, code=code),
        oauth_client=oauth_client,
        inventory_client=inventory_client,
        state_encoder=state_encoder,
        store=store,
        settings=settings,
    )

    redirect_target = result.redirect_to or settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(content=result.model_dump())


@router.get("/users/{user_id}/status", response_model=UserStatusResponse)
async def get_user_status(
    user_id: str,
    store: Annotated[Any, Depends(get_credential_store)],
) -> UserStatusResponse:
    """Report whether the user is registered; no credential material is returned."""
    try:
        record = store.get(user_id)
    except UserNotFoundError:
        return UserStatusResponse(authenticated=False)
    except CredentialStoreError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail="Status unavailable."
        ) from exc
    return UserStatusResponse(
        authenticated=True,
        reauthorization_required=record.needs_reauthorization,
    )


@router.delete(
    "/users/{user_id}",
    response_model=RevokeResponse,
    dependencies=[Depends(require_admin_token)],
)
async def revoke_user(
    user_id: str,
    store: Annotated[Any, Depends(get_credential_store)],
) -> RevokeResponse:
    """Forget a user's authorization."""
    try:
        if not store.exists(user_id):
            return RevokeResponse(status="not_found")
        store.delete(user_id)
    except CredentialStoreError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail="Revoke failed."
        ) from exc
    return RevokeResponse(status="revoked")


@router.post(
    "/vault/trigger",
    status_code=HTTPStatus.ACCEPTED,
    response_model=TriggerResponse,
    dependencies=[Depends(require_admin_token)],
)
async def trigger_vault_transfer(
    scheduler: Annotated[Any, Depends(get_batch_scheduler)],
) -> TriggerResponse:
    """Start one batch in the background and return without waiting for it."""
    if scheduler.trigger():
        return TriggerResponse(status="accepted")
    return TriggerResponse(status="already_running")


__all__ = ["router"]
