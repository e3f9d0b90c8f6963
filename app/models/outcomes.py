"""Tagged outcomes of the OAuth authorization callback."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(slots=True, frozen=True)
class Connected:
    """Code exchanged and tokens stored for the tenant."""

    tenant_id: str
    environment: str
    expires_in: int


@dataclass(slots=True, frozen=True)
class AuthDenied:
    """The provider reported an error instead of a code (e.g. user declined)."""

    error: str

    @property
    def reason(self) -> str:
        return self.error


@dataclass(slots=True, frozen=True)
class MalformedCallback:
    """Code, state or tenant id missing from the callback."""

    missing: tuple[str, ...]

    @property
    def reason(self) -> str:
        return f"Missing {', '.join(self.missing)} in OAuth callback"


@dataclass(slots=True, frozen=True)
class InvalidOrExpiredState:
    """State was never issued, already consumed, or older than the TTL."""

    @property
    def reason(self) -> str:
        return "Invalid or expired state parameter"


@dataclass(slots=True, frozen=True)
class ExchangeFailed:
    """The token endpoint refused or failed the authorization code exchange."""

    detail: str

    @property
    def reason(self) -> str:
        return "Failed to exchange authorization code for tokens"


CallbackOutcome = Union[
    Connected, AuthDenied, MalformedCallback, InvalidOrExpiredState, ExchangeFailed
]

__all__ = [
    "AuthDenied",
    "CallbackOutcome",
    "Connected",
    "ExchangeFailed",
    "InvalidOrExpiredState",
    "MalformedCallback",
]
