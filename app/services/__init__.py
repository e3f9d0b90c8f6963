"""Service layer exports."""

from .authorization_flow import AuthorizationFlowController
from .state_store import OAuthStateStore
from .token_lifecycle import (
    AccessToken,
    NotConnectedError,
    RefreshRejectedError,
    RefreshTokenExpiredError,
    RevokeResult,
    TokenLifecycleError,
    TokenLifecycleManager,
)
from .token_store import InMemoryTokenStore, TokenStore

__all__ = [
    "AccessToken",
    "AuthorizationFlowController",
    "InMemoryTokenStore",
    "NotConnectedError",
    "OAuthStateStore",
    "RefreshRejectedError",
    "RefreshTokenExpiredError",
    "RevokeResult",
    "TokenLifecycleError",
    "TokenLifecycleManager",
    "TokenStore",
]
