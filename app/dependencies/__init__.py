"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_batch_scheduler,
    get_bungie_oauth_client,
    get_credential_store,
    get_inventory_client,
    get_item_classifier,
    get_oauth_state_encoder,
    get_record_backend,
    get_token_cipher_service,
    get_token_lifecycle_manager,
    get_vault_sweep_service,
)
from .config import get_app_settings, require_admin_token

__all__ = [
    "get_app_settings",
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
    "require_admin_token",
]
