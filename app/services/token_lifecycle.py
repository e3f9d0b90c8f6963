"""
On-demand access to valid QuickBooks access tokens.

Refresh is lazy: it runs only when a caller asks for a token whose record is
inside the refresh window, or when a caller explicitly asks for it. For each
tenant at most one refresh call to the provider is in flight. The first caller
to need one starts a task and registers it under the tenant id; everyone who
arrives while it is pending awaits that same task and sees its result or its
exception. Registration happens with no ``await`` between the lookup and the
insert, so it is atomic with respect to other coroutines on the loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from app.clients.quickbooks_auth import (
    OAuthTokenExchangeError,
    ProviderUnavailableError,
    QuickBooksOAuthClient,
)
from app.core.config import ConfigurationError
from app.core.logging import mask_secret
from app.models.oauth import ConnectionStatus, TokenRecord, utcnow
from app.services.token_store import TokenStore

logger = logging.getLogger(__name__)


class TokenLifecycleError(Exception):
    """Base class for failures handing out a tenant's token."""

    requires_reconnect = False

    def __init__(self, tenant_id: str, message: str) -> None:
        super().__init__(message)
        self.tenant_id = tenant_id
        self.message = message


class NotConnectedError(TokenLifecycleError):
    """No token record exists for the tenant."""

    def __init__(self, tenant_id: str, message: Optional[str] = None) -> None:
        super().__init__(
            tenant_id,
            message
            or "No tokens found for this realmId. Please connect your QuickBooks account.",
        )


class RefreshTokenExpiredError(TokenLifecycleError):
    """The refresh token itself has expired; the record was deleted."""

    requires_reconnect = True

    def __init__(self, tenant_id: str) -> None:
        super().__init__(
            tenant_id,
            "Refresh token has expired. Please reconnect your QuickBooks account.",
        )


class RefreshRejectedError(TokenLifecycleError):
    """The provider rejected the refresh grant; the record was deleted."""

    requires_reconnect = True

    def __init__(self, tenant_id: str, detail: str) -> None:
        super().__init__(tenant_id, f"Failed to refresh token: {detail}")
        self.detail = detail


@dataclass(slots=True, frozen=True)
class AccessToken:
    """A bearer token handed to a caller, valid for at least the refresh window."""

    tenant_id: str
    value: str
    expires_at: datetime
    expires_in: int


@dataclass(slots=True, frozen=True)
class RevokeResult:
    """Outcome of a disconnect. Local deletion always happens."""

    tenant_id: str
    had_tokens: bool
    remote_revoked: bool


class TokenLifecycleManager:
    """Hands out, refreshes and revokes per-tenant QuickBooks tokens."""

    def __init__(
        self,
        *,
        oauth_client: QuickBooksOAuthClient,
        token_store: TokenStore,
        refresh_window: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._oauth = oauth_client
        self._tokens = token_store
        self._refresh_window = refresh_window
        self._clock = clock
        self._pending: Dict[str, asyncio.Task[TokenRecord]] = {}

    def is_refreshing(self, tenant_id: str) -> bool:
        task = self._pending.get(tenant_id)
        return task is not None and not task.done()

    async def get_valid_access_token(self, tenant_id: str) -> AccessToken:
        """Return a fresh access token, refreshing first when the record is stale."""
        record = self._tokens.get(tenant_id)
        if record is None:
            raise NotConnectedError(tenant_id)

        now = self._clock()
        if not record.needs_refresh(now, self._refresh_window):
            return self._access_token(record, now)

        record = await self._coalesced_refresh(tenant_id)
        return self._access_token(record, self._clock())

    async def refresh(self, tenant_id: str) -> TokenRecord:
        """Force a refresh, joining one already in flight for the tenant."""
        if self._tokens.get(tenant_id) is None:
            raise NotConnectedError(tenant_id)
        return await self._coalesced_refresh(tenant_id)

    async def revoke(self, tenant_id: str) -> RevokeResult:
        """
        Disconnect the tenant.

        The remote revoke is best effort; the local record is deleted even when
        that call cannot be made or fails. Disconnecting an unknown tenant succeeds.
        """
        record = self._tokens.get(tenant_id)
        if record is None:
            return RevokeResult(tenant_id=tenant_id, had_tokens=False, remote_revoked=False)

        remote_revoked = False
        try:
            await self._oauth.revoke_token(
                record.refresh_token, environment=record.environment
            )
            remote_revoked = True
        except (OAuthTokenExchangeError, ProviderUnavailableError, ConfigurationError) as exc:
            logger.warning(
                "Remote revoke failed for realm %s (continuing with local disconnect): %s",
                tenant_id,
                exc,
            )
        finally:
            self._tokens.delete(tenant_id)

        logger.info("Disconnected realm %s", tenant_id)
        return RevokeResult(tenant_id=tenant_id, had_tokens=True, remote_revoked=remote_revoked)

    def status(self, tenant_id: str) -> ConnectionStatus:
        """Pure read of the tenant's connection state."""
        record = self._tokens.get(tenant_id)
        if record is None:
            return ConnectionStatus(
                tenant_id=tenant_id,
                connected=False,
                message="No tokens found for this realmId",
            )

        now = self._clock()
        return ConnectionStatus(
            tenant_id=tenant_id,
            connected=True,
            environment=record.environment,
            expires_at=record.access_token_expires_at,
            expires_in=record.expires_in(now),
            is_expired=record.is_expired(now),
            needs_refresh=record.needs_refresh(now, self._refresh_window),
            refresh_in_flight=self.is_refreshing(tenant_id),
        )

    async def _coalesced_refresh(self, tenant_id: str) -> TokenRecord:
        task = self._pending.get(tenant_id)
        if task is None:
            task = asyncio.ensure_future(self._perform_refresh(tenant_id))
            self._pending[tenant_id] = task
            task.add_done_callback(lambda done: self._release(tenant_id, done))
        else:
            logger.debug("Joining in-flight refresh for realm %s", tenant_id)
        # Shielded so one waiter being cancelled does not cancel the shared refresh.
        return await asyncio.shield(task)

    def _release(self, tenant_id: str, task: asyncio.Task[TokenRecord]) -> None:
        if self._pending.get(tenant_id) is task:
            del self._pending[tenant_id]
        if not task.cancelled():
            # Marks the exception retrieved even if every waiter was cancelled.
            task.exception()

    async def _perform_refresh(self, tenant_id: str) -> TokenRecord:
        record = self._tokens.get(tenant_id)
        if record is None:
            raise NotConnectedError(tenant_id)

        if record.refresh_token_expired(self._clock()):
            self._tokens.delete(tenant_id)
            logger.warning("Refresh token expired for realm %s; record removed", tenant_id)
            raise RefreshTokenExpiredError(tenant_id)

        logger.info(
            "Refreshing access token for realm %s (refresh token %s)",
            tenant_id,
            mask_secret(record.refresh_token),
        )
        try:
            grant = await self._oauth.refresh_token(
                record.refresh_token, environment=record.environment
            )
        except OAuthTokenExchangeError as exc:
            current = self._tokens.get(tenant_id)
            if current is not None and current != record:
                logger.info(
                    "Refresh for realm %s rejected after re-authorization; keeping the new record",
                    tenant_id,
                )
                return current
            if current is not None:
                self._tokens.delete(tenant_id)
            logger.error(
                "QuickBooks rejected refresh for realm %s (status=%s): %s",
                tenant_id,
                exc.status_code,
                exc.detail,
            )
            raise RefreshRejectedError(tenant_id, exc.detail) from exc

        current = self._tokens.get(tenant_id)
        if current is None:
            raise NotConnectedError(
                tenant_id, "Realm was disconnected while its token was being refreshed."
            )
        if current != record:
            # Re-authorized while the refresh was in flight; the newer record stands.
            return current

        refreshed = TokenRecord.from_grant(
            tenant_id=tenant_id,
            grant=grant,
            environment=record.environment,
            issued_at=self._clock(),
            previous=record,
        )
        self._tokens.set(refreshed)
        logger.info(
            "Refreshed access token for realm %s (rotated refresh token: %s)",
            tenant_id,
            grant.refresh_token is not None and grant.refresh_token != record.refresh_token,
        )
        return refreshed

    @staticmethod
    def _access_token(record: TokenRecord, now: datetime) -> AccessToken:
        return AccessToken(
            tenant_id=record.tenant_id,
            value=record.access_token,
            expires_at=record.access_token_expires_at,
            expires_in=record.expires_in(now),
        )


__all__ = [
    "AccessToken",
    "NotConnectedError",
    "RefreshRejectedError",
    "RefreshTokenExpiredError",
    "RevokeResult",
    "TokenLifecycleError",
    "TokenLifecycleManager",
]
