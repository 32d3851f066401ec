"""
Manifest-backed item classification.

Definitions are loaded asynchronously ahead of planning so the planner can
call the classifier synchronously.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Protocol

from app.core.errors import PermanentRemoteError, RemoteServiceError
from app.models.inventory import InventorySnapshot, ItemCategory, PostmasterItem

logger = logging.getLogger(__name__)

# DestinyItemType values from the manifest.
_ITEM_TYPE_ARMOR = 2
_ITEM_TYPE_WEAPON = 3

# Unknown hashes stay unknown within a manifest version.
DEFAULT_NEGATIVE_TTL = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemDefinitionSource(Protocol):
    async def get_item_definition(self, item_hash: int) -> Dict[str, Any]: ...


def category_for_definition(definition: Dict[str, Any]) -> ItemCategory:
    item_type = definition.get("itemType")
    if item_type == _ITEM_TYPE_WEAPON:
        return ItemCategory.WEAPON
    if item_type == _ITEM_TYPE_ARMOR:
        return ItemCategory.ARMOR
    return ItemCategory.OTHER


class ManifestItemClassifier:
    """Classify postmaster items by their manifest ``itemType``.

    Successful lookups are cached for the life of the process since an item
    hash always resolves to the same definition within a manifest version.
    Until a lookup succeeds the item counts as ``OTHER``. Transient failures
    are retried on the next sweep; a hash the platform rejects outright is
    not asked for again until ``negative_ttl`` has passed.
    """

    def __init__(
        self,
        source: ItemDefinitionSource,
        *,
        negative_ttl: timedelta = DEFAULT_NEGATIVE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._negative_ttl = negative_ttl
        self._clock = clock
        self._categories: dict[int, ItemCategory] = {}
        self._rejected_until: dict[int, datetime] = {}

    async def load(self, item_hashes: Iterable[int]) -> None:
        now = self._clock()
        for item_hash in dict.fromkeys(item_hashes):
            if item_hash in self._categories:
                continue
            retry_at = self._rejected_until.get(item_hash)
            if retry_at is not None and now < retry_at:
                continue
            try:
                definition = await self._source.get_item_definition(item_hash)
            except PermanentRemoteError as exc:
                logger.warning(
                    "Item definition rejected",
                    extra={"item_hash": item_hash, "error": str(exc)},
                )
                self._rejected_until[item_hash] = now + self._negative_ttl
                continue
            except RemoteServiceError as exc:
                logger.warning(
                    "Item definition lookup failed",
                    extra={"item_hash": item_hash, "error": str(exc)},
                )
                continue
            self._rejected_until.pop(item_hash, None)
            self._categories[item_hash] = category_for_definition(definition)

    async def prime(self, snapshot: InventorySnapshot) -> None:
        await self.load(item.reference_hash for item in snapshot.postmaster_items)

    def __call__(self, item: PostmasterItem) -> ItemCategory:
        return self._categories.get(item.reference_hash, ItemCategory.OTHER)


__all__ = ["ItemDefinitionSource", "ManifestItemClassifier", "category_for_definition"]
