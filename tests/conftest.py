"""Pytest configuration and fakes shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for rootless collection
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from app.clients.quickbooks_auth import OAuthTokenExchangeError
from app.models.oauth import TokenGrant


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class FakeOAuthClient:
    """Stands in for ``QuickBooksOAuthClient`` and records every provider call."""

    environment = "sandbox"

    def __init__(self) -> None:
        self.authorization_requests: list[dict] = []
        self.exchanges: list[dict] = []
        self.refreshes: list[dict] = []
        self.revokes: list[dict] = []
        self.exchange_error: Optional[Exception] = None
        self.refresh_error: Optional[Exception] = None
        self.revoke_error: Optional[Exception] = None
        self.rotate_refresh_token = True
        self.refresh_gate: Optional[asyncio.Event] = None
        self.expires_in = 3600

    def build_authorization_url(self, *, state: str, redirect_uri: str) -> str:
        self.authorization_requests.append({"state": state, "redirect_uri": redirect_uri})
        return f"https://appcenter.example.com/connect/oauth2?state={state}"

    async def exchange_authorization_code(self, *, code: str, redirect_uri: str) -> TokenGrant:
        self.exchanges.append({"code": code, "redirect_uri": redirect_uri})
        if self.exchange_error is not None:
            raise self.exchange_error
        return TokenGrant(
            access_token=f"access-{code}",
            refresh_token=f"refresh-{code}",
            expires_in=self.expires_in,
            x_refresh_token_expires_in=8_726_400,
        )

    async def refresh_token(
        self, refresh_token: str, *, environment: Optional[str] = None
    ) -> TokenGrant:
        self.refreshes.append({"refresh_token": refresh_token, "environment": environment})
        call_number = len(self.refreshes)
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if self.refresh_error is not None:
            raise self.refresh_error
        return TokenGrant(
            access_token=f"refreshed-access-{call_number}",
            refresh_token=f"refreshed-refresh-{call_number}" if self.rotate_refresh_token else None,
            expires_in=self.expires_in,
        )

    async def revoke_token(self, token: str, *, environment: Optional[str] = None) -> None:
        self.revokes.append({"token": token, "environment": environment})
        if self.revoke_error is not None:
            raise self.revoke_error


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def oauth_client() -> FakeOAuthClient:
    return FakeOAuthClient()


@pytest.fixture
def rejected_grant() -> OAuthTokenExchangeError:
    return OAuthTokenExchangeError("invalid_grant: Token invalid", status_code=400)
