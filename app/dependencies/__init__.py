"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_flow_controller,
    get_quickbooks_accounting_client,
    get_quickbooks_oauth_client,
    get_state_store,
    get_token_lifecycle_manager,
    get_token_store,
)
from .config import SettingsDependency, get_app_settings
from .tokens import AccessTokenDependency, ResolvedToken, resolve_access_token

__all__ = [
    "AccessTokenDependency",
    "ResolvedToken",
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_flow_controller",
    "get_quickbooks_accounting_client",
    "get_quickbooks_oauth_client",
    "get_state_store",
    "get_token_lifecycle_manager",
    "get_token_store",
    "resolve_access_token",
]
