"""
Domain models for OAuth token and state persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field

# QuickBooks documents a 100 day refresh token lifetime; used only when the
# token endpoint omits ``x_refresh_token_expires_in``.
DEFAULT_REFRESH_TOKEN_LIFETIME = timedelta(days=100)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenGrant(BaseModel):
    """Token endpoint response for either grant type."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: int = Field(..., gt=0, description="Access token lifetime in seconds.")
    x_refresh_token_expires_in: Optional[int] = Field(
        None, gt=0, description="Refresh token lifetime in seconds."
    )
    token_type: Optional[str] = None


class TokenRecord(BaseModel):
    """The single credential record held for a tenant (QuickBooks realm)."""

    tenant_id: str
    access_token: str
    refresh_token: str
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    environment: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_grant(
        cls,
        *,
        tenant_id: str,
        grant: TokenGrant,
        environment: str,
        issued_at: datetime,
        previous: Optional["TokenRecord"] = None,
    ) -> "TokenRecord":
        """Build a record from a token response, keeping unrotated fields of ``previous``."""
        refresh_token = grant.refresh_token or (previous.refresh_token if previous else None)
        if not refresh_token:
            raise ValueError("Token grant did not include a refresh token.")

        if grant.x_refresh_token_expires_in:
            refresh_expires_at = issued_at + timedelta(seconds=grant.x_refresh_token_expires_in)
        elif previous is not None:
            refresh_expires_at = previous.refresh_token_expires_at
        else:
            refresh_expires_at = issued_at + DEFAULT_REFRESH_TOKEN_LIFETIME

        return cls(
            tenant_id=tenant_id,
            access_token=grant.access_token,
            refresh_token=refresh_token,
            access_token_expires_at=issued_at + timedelta(seconds=grant.expires_in),
            refresh_token_expires_at=refresh_expires_at,
            environment=environment,
            created_at=previous.created_at if previous else issued_at,
            updated_at=issued_at,
        )

    def expires_in(self, now: datetime) -> int:
        """Whole seconds of access token validity left, floored at zero."""
        return max(0, int((self.access_token_expires_at - now).total_seconds()))

    def is_expired(self, now: datetime) -> bool:
        return now >= self.access_token_expires_at

    def needs_refresh(self, now: datetime, window: timedelta) -> bool:
        return now >= self.access_token_expires_at - window

    def refresh_token_expired(self, now: datetime) -> bool:
        return now >= self.refresh_token_expires_at


class StateRecord(BaseModel):
    """An issued, not yet consumed, CSRF state value."""

    state: str
    created_at: datetime
    redirect_uri: str

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.created_at > ttl


class ConnectionStatus(BaseModel):
    """Read-only view of a tenant's connection, as reported to UIs."""

    tenant_id: str
    connected: bool
    environment: Optional[str] = None
    expires_at: Optional[datetime] = None
    expires_in: int = 0
    is_expired: bool = False
    needs_refresh: bool = False
    refresh_in_flight: bool = False
    message: Optional[str] = None


__all__ = [
    "ConnectionStatus",
    "DEFAULT_REFRESH_TOKEN_LIFETIME",
    "StateRecord",
    "TokenGrant",
    "TokenRecord",
    "utcnow",
]
