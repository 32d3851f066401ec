"""Service layer exports."""

from .batch_scheduler import BatchScheduler, SchedulerState
from .credential_store import CredentialStore
from .item_classifier import ManifestItemClassifier
from .token_cipher import TokenCipherService
from .token_lifecycle import TokenLifecycleManager
from .transfer_orchestrator import TransferOrchestrator
from .transfer_planner import TransferPlanner
from .vault_sweep import VaultSweepService

__all__ = [
    "BatchScheduler",
    "CredentialStore",
    "ManifestItemClassifier",
    "SchedulerState",
    "TokenCipherService",
    "TokenLifecycleManager",
    "TransferOrchestrator",
    "TransferPlanner",
    "VaultSweepService",
]
