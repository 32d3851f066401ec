"""Public schema exports."""

from .auth import ConnectionResult, OAuthCallbackPayload
from .vault import RevokeResponse, TriggerResponse, UserStatusResponse

__all__ = [
    "ConnectionResult",
    "OAuthCallbackPayload",
    "RevokeResponse",
    "TriggerResponse",
    "UserStatusResponse",
]
