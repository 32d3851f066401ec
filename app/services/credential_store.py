"""
Durable registry of authorized users.

Each user is one key-value entry (``pk = user#<id>``, ``sk = oauth#bungie``)
whose value is the JSON form of :class:`UserRecord` with both tokens
encrypted. Writes always replace the whole entry; there is no in-process cache.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from app.core.errors import (
    CredentialStoreError,
    CredentialStoreWriteError,
    UserNotFoundError,
)
from app.models.oauth import OAuthCredential
from app.models.user import UserRecord
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

_PK_PREFIX = "user#"
_SORT_KEY = "oauth#bungie"
_BACKEND_ERRORS = (sqlite3.Error, BotoCoreError, ClientError)


class KeyValueBackend(Protocol):
    def put_item(self, item: Dict[str, Any]) -> None: ...

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]: ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> None: ...

    def list_partition_keys(self, *, sort_key: str) -> list[str]: ...


class CredentialStore:
    """Read, write, enumerate and delete :class:`UserRecord` entries."""

    def __init__(self, backend: KeyValueBackend, token_cipher: TokenCipherService) -> None:
        self._backend = backend
        self._cipher = token_cipher

    @staticmethod
    def _partition_key(user_id: str) -> str:
        return f"{_PK_PREFIX}{user_id}"

    def get(self, user_id: str) -> UserRecord:
        try:
            item = self._backend.get_item(
                partition_key=self._partition_key(user_id), sort_key=_SORT_KEY
            )
        except _BACKEND_ERRORS as exc:
            raise CredentialStoreError(f"Failed to read record for user {user_id}.") from exc
        if not item:
            raise UserNotFoundError(f"No record stored for user {user_id}.")
        return self._deserialize(item)

    def exists(self, user_id: str) -> bool:
        try:
            item = self._backend.get_item(
                partition_key=self._partition_key(user_id), sort_key=_SORT_KEY
            )
        except _BACKEND_ERRORS as exc:
            raise CredentialStoreError(f"Failed to read record for user {user_id}.") from exc
        return item is not None

    def put(self, record: UserRecord) -> None:
        """Write the full record, replacing whatever was stored."""
        item = self._serialize(record)
        try:
            self._backend.put_item(item)
        except _BACKEND_ERRORS as exc:
            raise CredentialStoreWriteError(
                f"Failed to persist record for user {record.user_id}."
            ) from exc

    def list(self) -> list[str]:
        try:
            keys = self._backend.list_partition_keys(sort_key=_SORT_KEY)
        except _BACKEND_ERRORS as exc:
            raise CredentialStoreError("Failed to enumerate stored users.") from exc
        return [key[len(_PK_PREFIX):] for key in keys if key.startswith(_PK_PREFIX)]

    def delete(self, user_id: str) -> None:
        try:
            self._backend.delete_item(
                partition_key=self._partition_key(user_id), sort_key=_SORT_KEY
            )
        except _BACKEND_ERRORS as exc:
            raise CredentialStoreWriteError(
                f"Failed to delete record for user {user_id}."
            ) from exc
        logger.info("Deleted user record", extra={"user_id": user_id})

    def _serialize(self, record: UserRecord) -> Dict[str, Any]:
        credential = record.credential
        item: Dict[str, Any] = {
            "pk": self._partition_key(record.user_id),
            "sk": _SORT_KEY,
            "user_id": record.user_id,
            "membership_type": record.membership_type,
            "membership_id": record.membership_id,
            "characters": list(record.characters),
            "access_token_encrypted": self._cipher.encrypt(credential.access_token),
            "expires_at": credential.expires_at.isoformat(),
            "reauthorization_required": record.reauthorization_required,
            "created_at": record.created_at.isoformat(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if credential.refresh_token:
            item["refresh_token_encrypted"] = self._cipher.encrypt(credential.refresh_token)
        if record.display_name:
            item["display_name"] = record.display_name
        if record.reauthorization_reason:
            item["reauthorization_reason"] = record.reauthorization_reason
        return item

    def _deserialize(self, item: Dict[str, Any]) -> UserRecord:
        user_id = item.get("user_id", "")
        try:
            access_token = self._cipher.decrypt(item["access_token_encrypted"])
            encrypted_refresh = item.get("refresh_token_encrypted")
            refresh_token = self._cipher.decrypt(encrypted_refresh) if encrypted_refresh else None
            return UserRecord(
                user_id=user_id,
                credential=OAuthCredential(
                    access_token=access_token,
                    refresh_token=refresh_token,
                    expires_at=item["expires_at"],
                ),
                membership_type=item["membership_type"],
                membership_id=item["membership_id"],
                characters=[str(character) for character in item.get("characters", [])],
                display_name=item.get("display_name"),
                reauthorization_required=bool(item.get("reauthorization_required", False)),
                reauthorization_reason=item.get("reauthorization_reason"),
                created_at=item.get("created_at") or datetime.now(timezone.utc),
                updated_at=item.get("updated_at") or datetime.now(timezone.utc),
            )
        except (KeyError, ValueError, ValidationError) as exc:
            raise CredentialStoreError(
                f"Stored record for user {user_id or '<unknown>'} is unreadable."
            ) from exc


__all__ = ["CredentialStore", "KeyValueBackend"]
