from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import PermanentRemoteError, TransientRemoteError
from app.models.inventory import OutcomeKind, TransferRequest
from app.models.oauth import OAuthCredential
from app.services.transfer_orchestrator import TransferOrchestrator


def _credential() -> OAuthCredential:
    return OAuthCredential(
        access_token="access",
        refresh_token="refresh",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


def _request(instance_id: str) -> TransferRequest:
    return TransferRequest(
        character_id="c1",
        item_reference_hash=1,
        item_instance_id=instance_id,
        stack_size=1,
    )


class ScriptedClient:
    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[tuple] = []

    async def transfer_to_vault(
        self,
        credential,
        membership_type,
        character_id,
        item_reference_hash,
        item_instance_id,
        stack_size,
    ) -> None:
        self.calls.append((membership_type, character_id, item_instance_id, stack_size))
        failure = self.failures.get(item_instance_id)
        if failure is not None:
            raise failure


@pytest.mark.asyncio
async def test_failed_item_does_not_stop_remaining_transfers() -> None:
    client = ScriptedClient({"i2": PermanentRemoteError("DestinyItemNotFound")})
    orchestrator = TransferOrchestrator(client)

    outcomes = await orchestrator.execute(
        [_request("i1"), _request("i2"), _request("i3")], _credential(), 3
    )

    assert [o.kind for o in outcomes] == [
        OutcomeKind.SUCCESS,
        OutcomeKind.PERMANENT_ERROR,
        OutcomeKind.SUCCESS,
    ]
    assert [call[2] for call in client.calls] == ["i1", "i2", "i3"]
    assert outcomes[1].reason == "DestinyItemNotFound"


@pytest.mark.asyncio
async def test_transient_failures_are_recorded_not_retried() -> None:
    client = ScriptedClient({"i1": TransientRemoteError("throttled", status_code=429)})
    orchestrator = TransferOrchestrator(client)

    outcomes = await orchestrator.execute([_request("i1")], _credential(), 3)

    assert outcomes[0].kind is OutcomeKind.TRANSIENT_ERROR
    assert not outcomes[0].success
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_permanent_outcome() -> None:
    client = ScriptedClient({"i1": RuntimeError("boom")})
    orchestrator = TransferOrchestrator(client)

    outcomes = await orchestrator.execute([_request("i1"), _request("i2")], _credential(), 3)

    assert outcomes[0].kind is OutcomeKind.PERMANENT_ERROR
    assert outcomes[0].reason == "RuntimeError"
    assert outcomes[1].success


@pytest.mark.asyncio
async def test_should_stop_halts_before_next_item() -> None:
    client = ScriptedClient()
    orchestrator = TransferOrchestrator(client)

    outcomes = await orchestrator.execute(
        [_request("i1"), _request("i2"), _request("i3")],
        _credential(),
        3,
        should_stop=lambda: len(client.calls) >= 1,
    )

    assert [o.item_instance_id for o in outcomes] == ["i1"]


@pytest.mark.asyncio
async def test_empty_plan_makes_no_calls() -> None:
    client = ScriptedClient()

    assert await TransferOrchestrator(client).execute([], _credential(), 3) == []
    assert client.calls == []
