"""
Dependency that hands token consumers a bearer token for a QuickBooks realm.

An explicit ``Authorization: Bearer`` header is used as-is. Otherwise the
``realmId`` query parameter is resolved through the lifecycle manager, which
refreshes the token when needed. Consumers never cache tokens themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Query

from app.clients.quickbooks_auth import ProviderUnavailableError
from app.core.config import ConfigurationError
from app.dependencies.clients import get_token_lifecycle_manager
from app.services.token_lifecycle import TokenLifecycleError, TokenLifecycleManager


@dataclass(slots=True, frozen=True)
class ResolvedToken:
    realm_id: str
    access_token: str


async def resolve_access_token(
    manager: Annotated[TokenLifecycleManager, Depends(get_token_lifecycle_manager)],
    realm_id: str = Query(..., alias="realmId", description="QuickBooks company id."),
    authorization: Optional[str] = Header(default=None),
) -> ResolvedToken:
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return ResolvedToken(realm_id=realm_id, access_token=credentials.strip())

    try:
        token = await manager.get_valid_access_token(realm_id)
    except TokenLifecycleError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail={"error": exc.message, "requiresOAuth": True},
        ) from exc
    except ProviderUnavailableError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"QuickBooks is unavailable: {exc}",
        ) from exc
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return ResolvedToken(realm_id=realm_id, access_token=token.value)


AccessTokenDependency = Depends(resolve_access_token)

__all__ = ["AccessTokenDependency", "ResolvedToken", "resolve_access_token"]
