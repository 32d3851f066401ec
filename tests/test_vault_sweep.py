from __future__ import annotations

from datetime import timedelta

import pytest

from _fakes import (
    CONSUMABLE_HASH,
    FakeBungie,
    StubOAuth,
    build_sweep_service,
    inventory_snapshot,
    make_record,
    postmaster_item,
)
from app.core.errors import InvalidGrantError, TokenRefreshError, TransientRemoteError
from app.models.inventory import OutcomeKind
from app.models.oauth import TokenGrant
from app.models.reports import SweepStatus


@pytest.mark.asyncio
async def test_sweep_moves_weapons_and_armor_only(memory_backend) -> None:
    bungie = FakeBungie(
        inventory_snapshot(
            [
                postmaster_item("w1", "c1"),
                postmaster_item("g1", "c1", CONSUMABLE_HASH),
                postmaster_item("w2", "c2"),
            ]
        )
    )
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now))

    report = await service.sweep("u1")

    assert report.status is SweepStatus.COMPLETED
    assert bungie.transfers == ["w1", "w2"]
    assert report.transferred == 2
    assert report.failed == 0


@pytest.mark.asyncio
async def test_full_vault_makes_no_transfer_calls(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([postmaster_item("w1", "c1")], used=500))
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now))

    report = await service.sweep("u1")

    assert report.status is SweepStatus.VAULT_FULL
    assert report.detail == "vault full"
    assert bungie.transfers == []


@pytest.mark.asyncio
async def test_failed_transfer_is_reported_and_rest_continue(memory_backend) -> None:
    bungie = FakeBungie(
        inventory_snapshot(
            [postmaster_item("w1", "c1"), postmaster_item("w2", "c1"), postmaster_item("w3", "c2")]
        )
    )
    bungie.fail_transfers = {"w2"}
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now))

    report = await service.sweep("u1")

    assert [o.kind for o in report.outcomes] == [
        OutcomeKind.SUCCESS,
        OutcomeKind.TRANSIENT_ERROR,
        OutcomeKind.SUCCESS,
    ]


@pytest.mark.asyncio
async def test_empty_postmaster_reports_nothing_to_move(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([]))
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now))

    report = await service.sweep("u1")

    assert report.status is SweepStatus.NOTHING_TO_MOVE


@pytest.mark.asyncio
async def test_refreshed_token_is_used_for_fetch(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([]))
    oauth = StubOAuth(TokenGrant(access_token="A2", refresh_token="R2", expires_in=3600))
    service, store, clock = build_sweep_service(memory_backend, bungie, oauth)
    store.put(make_record("u1", now=clock.now, expires_in=timedelta(minutes=1)))

    await service.sweep("u1")

    assert bungie.fetches == ["A2"]
    assert store.get("u1").credential.refresh_token == "R2"


@pytest.mark.asyncio
async def test_invalid_grant_stops_before_fetch(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([postmaster_item("w1", "c1")]))
    oauth = StubOAuth(InvalidGrantError("invalid_grant"))
    service, store, clock = build_sweep_service(memory_backend, bungie, oauth)
    store.put(make_record("u1", now=clock.now, expires_in=timedelta(0)))

    report = await service.sweep("u1")

    assert report.status is SweepStatus.REAUTHORIZATION_REQUIRED
    assert bungie.fetches == []
    assert store.get("u1").reauthorization_required


@pytest.mark.asyncio
async def test_transient_refresh_failure_skips_user(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([postmaster_item("w1", "c1")]))
    oauth = StubOAuth(TokenRefreshError("Token endpoint returned 502."))
    service, store, clock = build_sweep_service(memory_backend, bungie, oauth)
    store.put(make_record("u1", now=clock.now, expires_in=timedelta(0)))

    report = await service.sweep("u1")

    assert report.status is SweepStatus.REFRESH_FAILED
    assert bungie.fetches == []
    assert not store.get("u1").reauthorization_required


@pytest.mark.asyncio
async def test_flagged_user_is_not_processed(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([postmaster_item("w1", "c1")]))
    oauth = StubOAuth()
    service, store, clock = build_sweep_service(memory_backend, bungie, oauth)
    store.put(
        make_record("u1", now=clock.now).model_copy(update={"reauthorization_required": True})
    )

    report = await service.sweep("u1")

    assert report.status is SweepStatus.REAUTHORIZATION_REQUIRED
    assert oauth.calls == []
    assert bungie.fetches == []


@pytest.mark.asyncio
async def test_fetch_failure_is_reported(memory_backend) -> None:
    bungie = FakeBungie(fetch_error=TransientRemoteError("SystemDisabled"))
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now))

    report = await service.sweep("u1")

    assert report.status is SweepStatus.FETCH_FAILED
    assert bungie.transfers == []


@pytest.mark.asyncio
async def test_unknown_user_reports_not_found(memory_backend) -> None:
    service, _, _ = build_sweep_service(memory_backend, FakeBungie(inventory_snapshot([])))

    report = await service.sweep("ghost")

    assert report.status is SweepStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_character_list_is_updated_from_snapshot(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([], characters=("c1", "c2", "c3")))
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now, characters=["c1"]))

    await service.sweep("u1")

    assert store.get("u1").characters == ["c1", "c2", "c3"]


@pytest.mark.asyncio
async def test_stop_before_start_skips_refresh_and_fetch(memory_backend) -> None:
    bungie = FakeBungie(inventory_snapshot([postmaster_item("w1", "c1")]))
    oauth = StubOAuth()
    service, store, clock = build_sweep_service(memory_backend, bungie, oauth)
    store.put(make_record("u1", now=clock.now, expires_in=timedelta(0)))

    report = await service.sweep("u1", should_stop=lambda: True)

    assert report.status is SweepStatus.STOPPED
    assert oauth.calls == []
    assert bungie.fetches == []


@pytest.mark.asyncio
async def test_stop_between_transfers_is_not_reported_as_completed(memory_backend) -> None:
    bungie = FakeBungie(
        inventory_snapshot(
            [postmaster_item("w1", "c1"), postmaster_item("w2", "c1"), postmaster_item("w3", "c2")]
        )
    )
    service, store, clock = build_sweep_service(memory_backend, bungie)
    store.put(make_record("u1", now=clock.now))

    report = await service.sweep("u1", should_stop=lambda: len(bungie.transfers) >= 1)

    assert report.status is SweepStatus.STOPPED
    assert bungie.transfers == ["w1"]
    assert [o.item_instance_id for o in report.outcomes] == ["w1"]
    assert report.detail == "2 planned transfers not attempted"
