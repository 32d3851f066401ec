"""Expose constructed client wrappers."""

from .bungie_api import BungieIdentity, BungieInventoryClient, DestinyMembership
from .bungie_auth import BungieOAuthClient, OAuthStateEncoder
from .dynamodb import DynamoDBClient
from .sqlite_store import SQLiteStore

__all__ = [
    "BungieIdentity",
    "BungieInventoryClient",
    "BungieOAuthClient",
    "DestinyMembership",
    "DynamoDBClient",
    "OAuthStateEncoder",
    "SQLiteStore",
]
