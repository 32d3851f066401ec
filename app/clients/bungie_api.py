"""
Bungie.net platform client.

Wraps the handful of Destiny 2 endpoints the vault sweep needs: identity
lookup at authorization time, the profile read that becomes an
:class:`InventorySnapshot`, the vault transfer, and item definition lookups.
Every failure is raised as a :class:`TransientRemoteError` or a
:class:`PermanentRemoteError` so the caller can record an outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import BungieSettings
from app.core.errors import (
    MalformedResponseError,
    PermanentRemoteError,
    TransientRemoteError,
)
from app.models.inventory import (
    CharacterSummary,
    InventorySnapshot,
    PostmasterItem,
    VaultOccupancy,
)
from app.models.oauth import OAuthCredential
from app.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

# Lost Items bucket shown in-game as the postmaster.
POSTMASTER_BUCKET_HASH = 215593132
VAULT_BUCKET_HASHES = frozenset({138197802, 2973005342, 3448274439, 1469714392})

PROFILE_COMPONENTS = "102,200,201"
CHARACTER_COMPONENTS = "200"

_SUCCESS = 1
# SystemDisabled, the ThrottleLimitExceeded* family and DestinyThrottledByGameServer.
_TRANSIENT_ERROR_CODES = frozenset({5, 36, 37, 38, 51, 52, 53, 54, 1672})


@dataclass(frozen=True, slots=True)
class DestinyMembership:
    membership_type: int
    membership_id: str
    display_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BungieIdentity:
    """The authenticated Bungie.net account and its Destiny memberships."""

    user_id: str
    display_name: Optional[str]
    memberships: List[DestinyMembership] = field(default_factory=list)
    primary_membership_id: Optional[str] = None

    @property
    def primary_membership(self) -> Optional[DestinyMembership]:
        if not self.memberships:
            return None
        if self.primary_membership_id:
            for membership in self.memberships:
                if membership.membership_id == self.primary_membership_id:
                    return membership
        return self.memberships[0]


class BungieInventoryClient:
    """Read profiles and move items through the Bungie.net platform API."""

    def __init__(
        self,
        settings: BungieSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._retry_config = retry_config or RetryConfig()

    @property
    def _platform_url(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/Platform"

    def _headers(self, access_token: str | None) -> Dict[str, str]:
        headers = {"X-API-Key": self._settings.api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        params: Dict[str, str] | None = None,
        json_body: Dict[str, Any] | None = None,
        retry: bool = False,
    ) -> Any:
        url = f"{self._platform_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds, transport=self._transport
            ) as client:
                if retry:
                    response = await request_with_retry(
                        client.request,
                        method,
                        url,
                        params=params,
                        json=json_body,
                        headers=self._headers(access_token),
                        retry_config=self._retry_config,
                    )
                else:
                    response = await client.request(
                        method,
                        url,
                        params=params,
                        json=json_body,
                        headers=self._headers(access_token),
                    )
        except httpx.HTTPError as exc:
            raise TransientRemoteError(
                f"{method} {path} failed: {exc.__class__.__name__}"
            ) from exc
        return self._unwrap(response, path)

    @staticmethod
    def _unwrap(response: httpx.Response, path: str) -> Any:
        """Return ``Response`` from the Bungie envelope or raise a classified error."""
        try:
            envelope = response.json()
        except ValueError:
            envelope = None

        error_code = envelope.get("ErrorCode") if isinstance(envelope, dict) else None
        error_status = envelope.get("ErrorStatus") if isinstance(envelope, dict) else None

        if response.status_code == 429 or response.status_code >= 500 or error_code in _TRANSIENT_ERROR_CODES:
            raise TransientRemoteError(
                f"{path} unavailable ({response.status_code}, {error_status})",
                status_code=response.status_code,
                error_status=error_status,
            )
        if response.status_code >= 400:
            raise PermanentRemoteError(
                f"{path} rejected ({response.status_code}, {error_status})",
                status_code=response.status_code,
                error_status=error_status,
            )
        if not isinstance(envelope, dict):
            raise MalformedResponseError(
                f"{path} returned a non-JSON body", status_code=response.status_code
            )
        if error_code != _SUCCESS:
            raise PermanentRemoteError(
                f"{path} returned {error_status} ({error_code})",
                status_code=response.status_code,
                error_status=error_status,
            )
        return envelope.get("Response")

    async def get_memberships(self, access_token: str) -> BungieIdentity:
        """Resolve the Bungie.net account behind ``access_token``."""
        payload = await self._send(
            "GET",
            "/User/GetMembershipsForCurrentUser/",
            access_token=access_token,
            retry=True,
        )
        try:
            bungie_user = payload.get("bungieNetUser") or {}
            memberships = [
                DestinyMembership(
                    membership_type=int(entry["membershipType"]),
                    membership_id=str(entry["membershipId"]),
                    display_name=entry.get("displayName"),
                )
                for entry in payload.get("destinyMemberships", [])
            ]
            return BungieIdentity(
                user_id=str(bungie_user["membershipId"]),
                display_name=bungie_user.get("displayName")
                or bungie_user.get("uniqueName"),
                memberships=memberships,
                primary_membership_id=payload.get("primaryMembershipId"),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError("Unexpected membership payload") from exc

    async def get_character_ids(
        self, access_token: str, membership_type: int, membership_id: str
    ) -> list[str]:
        payload = await self._send(
            "GET",
            f"/Destiny2/{membership_type}/Profile/{membership_id}/",
            access_token=access_token,
            params={"components": CHARACTER_COMPONENTS},
            retry=True,
        )
        try:
            characters = (payload.get("characters") or {}).get("data") or {}
            return [str(character_id) for character_id in characters]
        except AttributeError as exc:
            raise MalformedResponseError("Unexpected character payload") from exc

    async def fetch_inventory(
        self,
        credential: OAuthCredential,
        membership_type: int,
        membership_id: str,
    ) -> InventorySnapshot:
        """Read characters, postmaster contents and vault occupancy in one call."""
        payload = await self._send(
            "GET",
            f"/Destiny2/{membership_type}/Profile/{membership_id}/",
            access_token=credential.access_token,
            params={"components": PROFILE_COMPONENTS},
        )
        try:
            return self._parse_profile(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise MalformedResponseError("Unexpected profile payload") from exc

    def _parse_profile(self, payload: Dict[str, Any]) -> InventorySnapshot:
        characters_data = (payload.get("characters") or {}).get("data") or {}
        characters = tuple(
            CharacterSummary(
                character_id=str(character.get("characterId", character_id)),
                class_type=int(character.get("classType", -1)),
                light=int(character.get("light", 0)),
            )
            for character_id, character in characters_data.items()
        )

        inventories = (payload.get("characterInventories") or {}).get("data") or {}
        postmaster_items: list[PostmasterItem] = []
        for character_id, inventory in inventories.items():
            for item in inventory.get("items", []):
                if int(item["bucketHash"]) != POSTMASTER_BUCKET_HASH:
                    continue
                postmaster_items.append(
                    PostmasterItem(
                        item_id=str(item["itemHash"]),
                        item_instance_id=str(item.get("itemInstanceId", "0")),
                        reference_hash=int(item["itemHash"]),
                        bucket_id=int(item["bucketHash"]),
                        stack_size=int(item.get("quantity", 1)),
                        character_id=str(character_id),
                    )
                )

        profile_items = ((payload.get("profileInventory") or {}).get("data") or {}).get("items", [])
        used = sum(1 for item in profile_items if int(item["bucketHash"]) in VAULT_BUCKET_HASHES)

        return InventorySnapshot(
            characters=characters,
            postmaster_items=tuple(postmaster_items),
            vault=VaultOccupancy(used=used, capacity=self._settings.vault_capacity),
        )

    async def transfer_to_vault(
        self,
        credential: OAuthCredential,
        membership_type: int,
        character_id: str,
        item_reference_hash: int,
        item_instance_id: str,
        stack_size: int,
    ) -> None:
        """Move one item into the vault. Not retried: a lost response may still have taken effect."""
        await self._send(
            "POST",
            "/Destiny2/Actions/Items/TransferItem/",
            access_token=credential.access_token,
            json_body={
                "itemReferenceHash": item_reference_hash,
                "stackSize": stack_size,
                "transferToVault": True,
                "itemId": item_instance_id,
                "characterId": character_id,
                "membershipType": membership_type,
            },
        )

    async def get_item_definition(self, item_hash: int) -> Dict[str, Any]:
        """Fetch one ``DestinyInventoryItemDefinition`` from the manifest."""
        payload = await self._send(
            "GET",
            f"/Destiny2/Manifest/DestinyInventoryItemDefinition/{item_hash}/",
            retry=True,
        )
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Definition {item_hash} missing from response")
        return payload


__all__ = [
    "BungieIdentity",
    "BungieInventoryClient",
    "DestinyMembership",
    "POSTMASTER_BUCKET_HASH",
    "VAULT_BUCKET_HASHES",
]
