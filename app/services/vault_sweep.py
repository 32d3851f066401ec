"""
Per-user postmaster sweep: token check, fetch, plan, execute.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from app.core.errors import (
    CredentialStoreError,
    InvalidGrantError,
    RemoteServiceError,
    UserNotFoundError,
)
from app.models.inventory import InventorySnapshot
from app.models.oauth import OAuthCredential
from app.models.reports import SweepStatus, UserSweepReport
from app.models.user import UserRecord
from app.services.credential_store import CredentialStore
from app.services.item_classifier import ManifestItemClassifier
from app.services.token_lifecycle import TokenLifecycleManager
from app.services.transfer_orchestrator import TransferOrchestrator
from app.services.transfer_planner import TransferPlanner

logger = logging.getLogger(__name__)


def _stopped(should_stop: Optional[Callable[[], bool]]) -> bool:
    return should_stop is not None and should_stop()


class InventoryReader(Protocol):
    async def fetch_inventory(
        self,
        credential: OAuthCredential,
        membership_type: int,
        membership_id: str,
    ) -> InventorySnapshot: ...


class VaultSweepService:
    """Runs the full pipeline for one user and reports how it ended.

    Steps are strictly sequential. Expected failures become a report status;
    anything unexpected propagates to the scheduler's per-user boundary.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        token_manager: TokenLifecycleManager,
        inventory_client: InventoryReader,
        classifier: ManifestItemClassifier,
        planner: TransferPlanner,
        orchestrator: TransferOrchestrator,
    ) -> None:
        self._store = store
        self._tokens = token_manager
        self._inventory = inventory_client
        self._classifier = classifier
        self._planner = planner
        self._orchestrator = orchestrator

    async def sweep(
        self,
        user_id: str,
        *,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> UserSweepReport:
        try:
            record = self._store.get(user_id)
        except UserNotFoundError:
            # Revoked between listing and processing.
            return UserSweepReport(user_id, SweepStatus.NOT_FOUND)

        if record.needs_reauthorization:
            return UserSweepReport(
                user_id,
                SweepStatus.REAUTHORIZATION_REQUIRED,
                detail=record.reauthorization_reason,
            )

        if _stopped(should_stop):
            return UserSweepReport(user_id, SweepStatus.STOPPED, detail="before token check")

        record, refresh_error = await self._tokens.ensure_fresh(record)
        if isinstance(refresh_error, InvalidGrantError):
            return UserSweepReport(
                user_id, SweepStatus.REAUTHORIZATION_REQUIRED, detail=str(refresh_error)
            )
        if refresh_error is not None:
            return UserSweepReport(user_id, SweepStatus.REFRESH_FAILED, detail=str(refresh_error))

        if _stopped(should_stop):
            return UserSweepReport(user_id, SweepStatus.STOPPED, detail="before inventory fetch")

        try:
            snapshot = await self._inventory.fetch_inventory(
                record.credential, record.membership_type, record.membership_id
            )
        except RemoteServiceError as exc:
            logger.warning(
                "Inventory fetch failed", extra={"user_id": user_id, "error": str(exc)}
            )
            return UserSweepReport(user_id, SweepStatus.FETCH_FAILED, detail=str(exc))

        self._remember_characters(record, snapshot)

        if snapshot.vault.is_full:
            logger.info(
                "Vault full, skipping transfers",
                extra={"user_id": user_id, "used": snapshot.vault.used},
            )
            return UserSweepReport(user_id, SweepStatus.VAULT_FULL, detail="vault full")

        if _stopped(should_stop):
            return UserSweepReport(user_id, SweepStatus.STOPPED, detail="before planning")

        await self._classifier.prime(snapshot)
        plan = self._planner.plan(snapshot)
        if not plan:
            return UserSweepReport(user_id, SweepStatus.NOTHING_TO_MOVE)

        outcomes = await self._orchestrator.execute(
            plan, record.credential, record.membership_type, should_stop=should_stop
        )
        if len(outcomes) < len(plan):
            return UserSweepReport(
                user_id,
                SweepStatus.STOPPED,
                outcomes=outcomes,
                detail=f"{len(plan) - len(outcomes)} planned transfers not attempted",
            )
        report = UserSweepReport(user_id, SweepStatus.COMPLETED, outcomes=outcomes)
        logger.info(
            "Postmaster sweep finished",
            extra={
                "user_id": user_id,
                "transferred": report.transferred,
                "failed": report.failed,
            },
        )
        return report

    def _remember_characters(self, record: UserRecord, snapshot: InventorySnapshot) -> None:
        """Opportunistically refresh the stored character list."""
        character_ids = snapshot.character_ids
        if not character_ids or character_ids == record.characters:
            return
        try:
            self._store.put(record.model_copy(update={"characters": character_ids}))
        except CredentialStoreError:
            logger.warning("Could not update known characters", extra={"user_id": record.user_id})


__all__ = ["InventoryReader", "VaultSweepService"]
