"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    BungieInventoryClient,
    BungieOAuthClient,
    DynamoDBClient,
    OAuthStateEncoder,
    SQLiteStore,
)
from app.core.config import get_settings
from app.services import (
    BatchScheduler,
    CredentialStore,
    ManifestItemClassifier,
    TokenCipherService,
    TokenLifecycleManager,
    TransferOrchestrator,
    TransferPlanner,
    VaultSweepService,
)
from app.services.credential_store import KeyValueBackend


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Bungie client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.bungie.client_secret)


@lru_cache()
def get_bungie_oauth_client() -> BungieOAuthClient:
    """Create a singleton Bungie OAuth client."""
    return BungieOAuthClient(_settings().bungie)


@lru_cache()
def get_inventory_client() -> BungieInventoryClient:
    """Provide the Bungie platform client."""
    return BungieInventoryClient(_settings().bungie)


@lru_cache()
def get_record_backend() -> KeyValueBackend:
    """Provide the configured key-value backend for user records."""
    settings = _settings()
    if settings.storage.backend == "dynamodb":
        return DynamoDBClient(settings.aws)
    return SQLiteStore(settings.storage.sqlite_db_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secrets = settings.security.token_encryption_secrets or (settings.bungie.client_secret,)
    return TokenCipherService(secrets=secrets)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the durable user registry."""
    return CredentialStore(get_record_backend(), get_token_cipher_service())


@lru_cache()
def get_token_lifecycle_manager() -> TokenLifecycleManager:
    return TokenLifecycleManager(get_credential_store(), get_bungie_oauth_client())


@lru_cache()
def get_item_classifier() -> ManifestItemClassifier:
    """Provide the process-wide manifest classifier and its definition cache."""
    return ManifestItemClassifier(get_inventory_client())


@lru_cache()
def get_vault_sweep_service() -> VaultSweepService:
    classifier = get_item_classifier()
    return VaultSweepService(
        store=get_credential_store(),
        token_manager=get_token_lifecycle_manager(),
        inventory_client=get_inventory_client(),
        classifier=classifier,
        planner=TransferPlanner(classifier),
        orchestrator=TransferOrchestrator(get_inventory_client()),
    )


@lru_cache()
def get_batch_scheduler() -> BatchScheduler:
    """Provide the single batch scheduler shared by the loop and manual triggers."""
    return BatchScheduler(
        get_credential_store(),
        get_vault_sweep_service(),
        max_concurrency=_settings().scheduler.max_concurrency,
    )


__all__ = [
    "get_batch_scheduler",
    "get_bungie_oauth_client",
    "get_credential_store",
    "get_inventory_client",
    "get_item_classifier",
    "get_oauth_state_encoder",
    "get_record_backend",
    "get_token_cipher_service",
    "get_token_lifecycle_manager",
    "get_vault_sweep_service",
]
