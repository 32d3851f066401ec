"""
Inventory snapshot and transfer value types.

Everything here is immutable and lives for a single sweep of a single user.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ItemCategory(str, Enum):
    """Coarse item class used to decide whether an item may be vaulted."""

    WEAPON = "weapon"
    ARMOR = "armor"
    OTHER = "other"

    @property
    def transferable(self) -> bool:
        return self in (ItemCategory.WEAPON, ItemCategory.ARMOR)


@dataclass(frozen=True, slots=True)
class CharacterSummary:
    character_id: str
    class_type: int
    light: int = 0


@dataclass(frozen=True, slots=True)
class PostmasterItem:
    """An item waiting in a character's postmaster."""

    item_id: str
    item_instance_id: str
    reference_hash: int
    bucket_id: int
    stack_size: int
    character_id: str


@dataclass(frozen=True, slots=True)
class VaultOccupancy:
    used: int
    capacity: int

    @property
    def is_full(self) -> bool:
        # used may legitimately exceed capacity on some platforms.
        return self.used >= self.capacity


@dataclass(frozen=True, slots=True)
class InventorySnapshot:
    characters: Tuple[CharacterSummary, ...]
    postmaster_items: Tuple[PostmasterItem, ...]
    vault: VaultOccupancy

    @property
    def character_ids(self) -> list[str]:
        return [character.character_id for character in self.characters]


@dataclass(frozen=True, slots=True)
class TransferRequest:
    """One planned postmaster-to-vault move."""

    character_id: str
    item_reference_hash: int
    item_instance_id: str
    stack_size: int

    @classmethod
    def for_item(cls, item: PostmasterItem) -> "TransferRequest":
        return cls(
            character_id=item.character_id,
            item_reference_hash=item.reference_hash,
            item_instance_id=item.item_instance_id,
            stack_size=item.stack_size,
        )


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"


@dataclass(frozen=True, slots=True)
class TransferOutcome:
    """Result of one attempted transfer."""

    item_instance_id: str
    kind: OutcomeKind
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


__all__ = [
    "CharacterSummary",
    "InventorySnapshot",
    "ItemCategory",
    "OutcomeKind",
    "PostmasterItem",
    "TransferOutcome",
    "TransferRequest",
    "VaultOccupancy",
]
