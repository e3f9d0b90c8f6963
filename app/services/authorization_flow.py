"""
Authorization-code flow for connecting a QuickBooks company.

``build_authorization_url`` issues a single-use state bound to the redirect
URI of this attempt; ``handle_callback`` consumes it, exchanges the code with
that same redirect URI, and stores the tenant's first token record.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable, Optional, Tuple

from app.clients.quickbooks_auth import (
    OAuthTokenExchangeError,
    ProviderUnavailableError,
    QuickBooksOAuthClient,
)
from app.core.config import ConfigurationError, QuickBooksSettings
from app.models.oauth import StateRecord, TokenRecord, utcnow
from app.models.outcomes import (
    AuthDenied,
    CallbackOutcome,
    Connected,
    ExchangeFailed,
    InvalidOrExpiredState,
    MalformedCallback,
)
from app.services.state_store import OAuthStateStore
from app.services.token_store import TokenStore

logger = logging.getLogger(__name__)

STATE_ENTROPY_BYTES = 32


class AuthorizationFlowController:
    """Builds consent URLs and turns provider callbacks into stored tokens."""

    def __init__(
        self,
        *,
        oauth_client: QuickBooksOAuthClient,
        state_store: OAuthStateStore,
        token_store: TokenStore,
        quickbooks_settings: QuickBooksSettings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._oauth = oauth_client
        self._states = state_store
        self._tokens = token_store
        self._quickbooks = quickbooks_settings
        self._clock = clock

    def build_authorization_url(
        self, *, fallback_redirect_uri: Optional[str] = None
    ) -> Tuple[str, str]:
        """
        Return ``(authorization_url, state)`` for a new connection attempt.

        The configured redirect URI wins; ``fallback_redirect_uri`` (usually the
        callback route of the serving host) is used only when none is configured.
        Raises ``ConfigurationError`` when credentials or a redirect URI are missing.
        """
        self._quickbooks.require_credentials()
        configured = self._quickbooks.redirect_uri
        redirect_uri = str(configured) if configured else fallback_redirect_uri
        if not redirect_uri:
            raise ConfigurationError(
                "QuickBooks redirect URI not configured. Set QUICKBOOKS_REDIRECT_URI."
            )

        now = self._clock()
        state = secrets.token_hex(STATE_ENTROPY_BYTES)
        self._states.set(StateRecord(state=state, created_at=now, redirect_uri=redirect_uri))
        purged = self._states.purge_expired(now)
        if purged:
            logger.debug("Purged %d expired OAuth states", purged)

        url = self._oauth.build_authorization_url(state=state, redirect_uri=redirect_uri)
        logger.info("Issued QuickBooks authorization URL (redirect_uri=%s)", redirect_uri)
        return url, state

    async def handle_callback(
        self,
        *,
        code: Optional[str],
        state: Optional[str],
        tenant_id: Optional[str],
        provider_error: Optional[str] = None,
    ) -> CallbackOutcome:
        """Validate the callback, exchange the code and store the tenant's tokens."""
        if provider_error:
            logger.info("QuickBooks authorization denied: %s", provider_error)
            return AuthDenied(error=provider_error)

        missing = tuple(
            name
            for name, value in (("code", code), ("state", state), ("realmId", tenant_id))
            if not value
        )
        if missing:
            return MalformedCallback(missing=missing)

        now = self._clock()
        state_record = self._states.consume(state, now)  # type: ignore[arg-type]
        if state_record is None:
            logger.warning("Rejected OAuth callback with unknown or expired state")
            return InvalidOrExpiredState()

        try:
            grant = await self._oauth.exchange_authorization_code(
                code=code,  # type: ignore[arg-type]
                redirect_uri=state_record.redirect_uri,
            )
        except OAuthTokenExchangeError as exc:
            logger.error(
                "Token exchange rejected for realm %s (status=%s): %s",
                tenant_id,
                exc.status_code,
                exc.detail,
            )
            return ExchangeFailed(detail=exc.detail)
        except ProviderUnavailableError as exc:
            logger.error("Token exchange failed for realm %s: %s", tenant_id, exc)
            return ExchangeFailed(detail=str(exc))

        issued_at = self._clock()
        record = TokenRecord.from_grant(
            tenant_id=tenant_id,  # type: ignore[arg-type]
            grant=grant,
            environment=self._oauth.environment,
            issued_at=issued_at,
        )
        self._tokens.set(record)
        logger.info("Connected QuickBooks realm %s (%s)", tenant_id, record.environment)
        return Connected(
            tenant_id=record.tenant_id,
            environment=record.environment,
            expires_in=record.expires_in(issued_at),
        )


__all__ = ["AuthorizationFlowController", "STATE_ENTROPY_BYTES"]
