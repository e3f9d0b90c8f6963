"""Expose constructed client wrappers."""

from .quickbooks_api import QuickBooksAccountingClient, QuickBooksAPIError
from .quickbooks_auth import (
    OAuthTokenExchangeError,
    ProviderUnavailableError,
    QuickBooksOAuthClient,
)
from .sqlite_store import SQLiteTokenStore

__all__ = [
    "OAuthTokenExchangeError",
    "ProviderUnavailableError",
    "QuickBooksAPIError",
    "QuickBooksAccountingClient",
    "QuickBooksOAuthClient",
    "SQLiteTokenStore",
]
