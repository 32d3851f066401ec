"""
Execute a transfer plan one item at a time.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Protocol

from app.core.errors import PermanentRemoteError, TransientRemoteError
from app.models.inventory import OutcomeKind, TransferOutcome, TransferRequest
from app.models.oauth import OAuthCredential

logger = logging.getLogger(__name__)


class VaultTransferClient(Protocol):
    async def transfer_to_vault(
        self,
        credential: OAuthCredential,
        membership_type: int,
        character_id: str,
        item_reference_hash: int,
        item_instance_id: str,
        stack_size: int,
    ) -> None: ...


class TransferOrchestrator:
    """Run transfers sequentially, recording one outcome per attempted item.

    A failed item never stops the rest of the plan and is not retried; it
    will still be in the postmaster on the next sweep.
    """

    def __init__(self, client: VaultTransferClient) -> None:
        self._client = client

    async def execute(
        self,
        plan: Iterable[TransferRequest],
        credential: OAuthCredential,
        membership_type: int,
        *,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> list[TransferOutcome]:
        outcomes: list[TransferOutcome] = []
        for request in plan:
            if should_stop is not None and should_stop():
                logger.info("Stopping before remaining transfers")
                break
            outcomes.append(await self._transfer(request, credential, membership_type))
        return outcomes

    async def _transfer(
        self,
        request: TransferRequest,
        credential: OAuthCredential,
        membership_type: int,
    ) -> TransferOutcome:
        try:
            await self._client.transfer_to_vault(
                credential,
                membership_type,
                request.character_id,
                request.item_reference_hash,
                request.item_instance_id,
                request.stack_size,
            )
        except TransientRemoteError as exc:
            logger.warning(
                "Transfer failed transiently",
                extra={"item_instance_id": request.item_instance_id, "error": str(exc)},
            )
            return TransferOutcome(request.item_instance_id, OutcomeKind.TRANSIENT_ERROR, str(exc))
        except PermanentRemoteError as exc:
            logger.warning(
                "Transfer rejected",
                extra={"item_instance_id": request.item_instance_id, "error": str(exc)},
            )
            return TransferOutcome(request.item_instance_id, OutcomeKind.PERMANENT_ERROR, str(exc))
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception(
                "Unexpected failure during transfer",
                extra={"item_instance_id": request.item_instance_id},
            )
            return TransferOutcome(
                request.item_instance_id, OutcomeKind.PERMANENT_ERROR, exc.__class__.__name__
            )
        return TransferOutcome(request.item_instance_id, OutcomeKind.SUCCESS)


__all__ = ["TransferOrchestrator", "VaultTransferClient"]
