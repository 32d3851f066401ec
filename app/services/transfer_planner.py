"""
Decide which postmaster items to move and in what order.
"""

from __future__ import annotations

from typing import Callable

from app.models.inventory import (
    InventorySnapshot,
    ItemCategory,
    PostmasterItem,
    TransferRequest,
)

ItemClassifier = Callable[[PostmasterItem], ItemCategory]


class TransferPlanner:
    """Build a deterministic transfer plan from an inventory snapshot.

    Characters are walked in snapshot order and each character's postmaster
    items in encounter order. An item is planned only when the classifier
    marks it transferable and the vault still has room once every earlier
    planned item has landed.
    """

    def __init__(self, classifier: ItemClassifier) -> None:
        self._classify = classifier

    def plan(self, snapshot: InventorySnapshot) -> tuple[TransferRequest, ...]:
        vault = snapshot.vault
        if vault.is_full:
            return ()

        planned: list[TransferRequest] = []
        for character in snapshot.characters:
            for item in snapshot.postmaster_items:
                if item.character_id != character.character_id:
                    continue
                if vault.used + len(planned) >= vault.capacity:
                    return tuple(planned)
                if not self._classify(item).transferable:
                    continue
                planned.append(TransferRequest.for_item(item))
        return tuple(planned)


__all__ = ["ItemClassifier", "TransferPlanner"]
