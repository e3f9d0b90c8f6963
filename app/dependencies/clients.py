"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each factory is cached, so the stores and services are built once per process
and every request handler receives the same instances.
"""

from datetime import timedelta
from functools import lru_cache

from app.clients import (
    QuickBooksAccountingClient,
    QuickBooksOAuthClient,
    SQLiteTokenStore,
)
from app.core.config import get_settings
from app.services import (
    AuthorizationFlowController,
    InMemoryTokenStore,
    OAuthStateStore,
    TokenLifecycleManager,
    TokenStore,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_quickbooks_oauth_client() -> QuickBooksOAuthClient:
    """Create a singleton QuickBooks OAuth client."""
    settings = _settings()
    return QuickBooksOAuthClient(settings.quickbooks, settings.oauth)


@lru_cache()
def get_quickbooks_accounting_client() -> QuickBooksAccountingClient:
    """Provide the QuickBooks accounting API client."""
    settings = _settings()
    return QuickBooksAccountingClient(
        environment=settings.quickbooks.environment,
        timeout=settings.oauth.http_timeout_seconds,
    )


@lru_cache()
def get_state_store() -> OAuthStateStore:
    """Provide the process-wide OAuth state store."""
    settings = _settings()
    return OAuthStateStore(ttl=timedelta(seconds=settings.oauth.state_ttl_seconds))


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide token storage; SQLite when a path is configured, memory otherwise."""
    settings = _settings()
    if settings.storage.token_store_path:
        return SQLiteTokenStore(settings.storage.token_store_path)
    return InMemoryTokenStore()


@lru_cache()
def get_authorization_flow_controller() -> AuthorizationFlowController:
    """Provide the authorization-code flow controller."""
    settings = _settings()
    return AuthorizationFlowController(
        oauth_client=get_quickbooks_oauth_client(),
        state_store=get_state_store(),
        token_store=get_token_store(),
        quickbooks_settings=settings.quickbooks,
    )


@lru_cache()
def get_token_lifecycle_manager() -> TokenLifecycleManager:
    """Provide the token lifecycle manager shared by every request."""
    settings = _settings()
    return TokenLifecycleManager(
        oauth_client=get_quickbooks_oauth_client(),
        token_store=get_token_store(),
        refresh_window=timedelta(seconds=settings.oauth.refresh_window_seconds),
    )


__all__ = [
    "get_authorization_flow_controller",
    "get_quickbooks_accounting_client",
    "get_quickbooks_oauth_client",
    "get_state_store",
    "get_token_lifecycle_manager",
    "get_token_store",
]
