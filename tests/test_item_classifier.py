from __future__ import annotations

from datetime import timedelta

import pytest

from _fakes import FrozenClock
from app.core.errors import PermanentRemoteError, TransientRemoteError
from app.models.inventory import ItemCategory, PostmasterItem
from app.services.item_classifier import ManifestItemClassifier, category_for_definition


def _item(reference_hash: int) -> PostmasterItem:
    return PostmasterItem(
        item_id=str(reference_hash),
        item_instance_id="0",
        reference_hash=reference_hash,
        bucket_id=215593132,
        stack_size=1,
        character_id="c1",
    )


class DefinitionSource:
    def __init__(self, definitions: dict[int, dict], failing=(), rejected=()) -> None:
        self.definitions = definitions
        self.failing = set(failing)
        self.rejected = set(rejected)
        self.lookups: list[int] = []

    async def get_item_definition(self, item_hash: int) -> dict:
        self.lookups.append(item_hash)
        if item_hash in self.failing:
            raise TransientRemoteError("manifest unavailable")
        if item_hash in self.rejected:
            raise PermanentRemoteError("DestinyUnexpectedError", status_code=404)
        return self.definitions[item_hash]


@pytest.mark.parametrize(
    ("item_type", "expected"),
    [(3, ItemCategory.WEAPON), (2, ItemCategory.ARMOR), (9, ItemCategory.OTHER), (None, ItemCategory.OTHER)],
)
def test_category_for_definition(item_type, expected) -> None:
    assert category_for_definition({"itemType": item_type}) is expected


@pytest.mark.asyncio
async def test_definitions_are_cached_after_first_lookup() -> None:
    source = DefinitionSource({1: {"itemType": 3}, 2: {"itemType": 2}})
    classifier = ManifestItemClassifier(source)

    await classifier.load([1, 2, 1])
    await classifier.load([1, 2])

    assert source.lookups == [1, 2]
    assert classifier(_item(1)) is ItemCategory.WEAPON
    assert classifier(_item(2)) is ItemCategory.ARMOR


@pytest.mark.asyncio
async def test_failed_lookup_counts_as_other_and_is_retried() -> None:
    source = DefinitionSource({7: {"itemType": 3}}, failing={7})
    classifier = ManifestItemClassifier(source)

    await classifier.load([7])
    assert classifier(_item(7)) is ItemCategory.OTHER

    source.failing.clear()
    await classifier.load([7])
    assert classifier(_item(7)) is ItemCategory.WEAPON
    assert source.lookups == [7, 7]


def test_unknown_item_is_not_transferable() -> None:
    classifier = ManifestItemClassifier(DefinitionSource({}))

    assert not classifier(_item(42)).transferable


@pytest.mark.asyncio
async def test_rejected_hash_is_not_requested_again_until_ttl_expires() -> None:
    clock = FrozenClock()
    source = DefinitionSource({5: {"itemType": 2}}, rejected={5})
    classifier = ManifestItemClassifier(source, negative_ttl=timedelta(minutes=10), clock=clock)

    await classifier.load([5])
    await classifier.load([5])
    clock.advance(timedelta(minutes=9))
    await classifier.load([5])

    assert source.lookups == [5]
    assert classifier(_item(5)) is ItemCategory.OTHER

    source.rejected.clear()
    clock.advance(timedelta(minutes=2))
    await classifier.load([5])

    assert source.lookups == [5, 5]
    assert classifier(_item(5)) is ItemCategory.ARMOR
