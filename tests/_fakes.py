"""Shared fakes for the service and route tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from app.core.errors import TransientRemoteError
from app.models.inventory import (
    CharacterSummary,
    InventorySnapshot,
    PostmasterItem,
    VaultOccupancy,
)
from app.models.oauth import OAuthCredential, TokenGrant
from app.models.user import UserRecord
from app.services.credential_store import CredentialStore
from app.services.item_classifier import ManifestItemClassifier
from app.services.token_cipher import TokenCipherService
from app.services.token_lifecycle import TokenLifecycleManager
from app.services.transfer_orchestrator import TransferOrchestrator
from app.services.transfer_planner import TransferPlanner
from app.services.vault_sweep import VaultSweepService


class MemoryBackend:
    """In-memory stand-in for the SQLite/DynamoDB key-value backends."""

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict] = {}
        self.puts = 0

    def put_item(self, item: dict) -> None:
        self.puts += 1
        self.items[(item["pk"], item["sk"])] = dict(item)

    def get_item(self, *, partition_key: str, sort_key: str) -> dict | None:
        item = self.items.get((partition_key, sort_key))
        return dict(item) if item else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        self.items.pop((partition_key, sort_key), None)

    def list_partition_keys(self, *, sort_key: str) -> list[str]:
        return [pk for (pk, sk) in self.items if sk == sort_key]


def make_record(
    user_id: str = "4611686018400000001",
    *,
    expires_in: timedelta = timedelta(hours=1),
    now: datetime | None = None,
    refresh_token: str | None = "refresh-1",
    characters: list[str] | None = None,
) -> UserRecord:
    now = now or datetime.now(timezone.utc)
    return UserRecord(
        user_id=user_id,
        credential=OAuthCredential(
            access_token="access-1",
            refresh_token=refresh_token,
            expires_at=now + expires_in,
        ),
        membership_type=3,
        membership_id=f"m-{user_id}",
        characters=characters if characters is not None else ["c1", "c2"],
        display_name="Guardian",
    )


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


WEAPON_HASH = 1001
CONSUMABLE_HASH = 2002


def postmaster_item(
    instance_id: str, character_id: str, reference_hash: int = WEAPON_HASH
) -> PostmasterItem:
    return PostmasterItem(
        item_id=f"id-{instance_id}",
        item_instance_id=instance_id,
        reference_hash=reference_hash,
        bucket_id=215593132,
        stack_size=1,
        character_id=character_id,
    )


def inventory_snapshot(items, *, used: int = 10, characters=("c1", "c2")) -> InventorySnapshot:
    return InventorySnapshot(
        characters=tuple(CharacterSummary(cid, 1) for cid in characters),
        postmaster_items=tuple(items),
        vault=VaultOccupancy(used=used, capacity=500),
    )


class FakeBungie:
    """Inventory, manifest and transfer calls served from memory."""

    def __init__(
        self,
        snapshot: InventorySnapshot | None = None,
        fetch_error=None,
        *,
        fetch_delay: float = 0.0,
    ) -> None:
        self.snapshot = snapshot
        self.fetch_error = fetch_error
        self.fetch_delay = fetch_delay
        self.fetches: list[str] = []
        self.fetched_memberships: list[str] = []
        self.transfers: list[str] = []
        self.fail_transfers: set[str] = set()

    async def fetch_inventory(self, credential, membership_type, membership_id):
        self.fetches.append(credential.access_token)
        self.fetched_memberships.append(membership_id)
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.snapshot

    async def get_item_definition(self, item_hash: int) -> dict:
        return {"itemType": 3 if item_hash == WEAPON_HASH else 9}

    async def transfer_to_vault(
        self, credential, membership_type, character_id, item_reference_hash,
        item_instance_id, stack_size,
    ) -> None:
        self.transfers.append(item_instance_id)
        if item_instance_id in self.fail_transfers:
            raise TransientRemoteError("throttled", status_code=503)


class StubOAuth:
    def __init__(self, result=None) -> None:
        self.result = result
        self.calls: list[str] = []

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.calls.append(refresh_token)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def build_sweep_service(
    backend: MemoryBackend, bungie: FakeBungie, oauth: StubOAuth | None = None
) -> tuple[VaultSweepService, CredentialStore, FrozenClock]:
    """Wire the real sweep pipeline around in-memory fakes."""
    clock = FrozenClock()
    store = CredentialStore(backend, TokenCipherService(secrets=["sweep"]))
    classifier = ManifestItemClassifier(bungie)
    service = VaultSweepService(
        store=store,
        token_manager=TokenLifecycleManager(store, oauth or StubOAuth(), clock=clock),
        inventory_client=bungie,
        classifier=classifier,
        planner=TransferPlanner(classifier),
        orchestrator=TransferOrchestrator(bungie),
    )
    return service, store, clock
