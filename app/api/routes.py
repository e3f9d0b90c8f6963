"""
FastAPI routes for the QuickBooks connection service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.clients.quickbooks_api import QuickBooksAPIError, QuickBooksAccountingClient
from app.clients.quickbooks_auth import ProviderUnavailableError
from app.core.config import AppSettings, ConfigurationError
from app.dependencies import (
    AccessTokenDependency,
    ResolvedToken,
    SettingsDependency,
    get_authorization_flow_controller,
    get_quickbooks_accounting_client,
    get_token_lifecycle_manager,
)
from app.models.outcomes import Connected
from app.schemas import TenantRequest
from app.services import (
    AuthorizationFlowController,
    NotConnectedError,
    TokenLifecycleError,
    TokenLifecycleManager,
)

router = APIRouter()
logger = logging.getLogger(__name__)

FlowDependency = Annotated[
    AuthorizationFlowController, Depends(get_authorization_flow_controller)
]
ManagerDependency = Annotated[TokenLifecycleManager, Depends(get_token_lifecycle_manager)]


def _failure(status_code: int, error: str, **flags: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **flags},
    )


def _lifecycle_failure(exc: Exception, *, not_connected_flag: Optional[str] = None) -> JSONResponse:
    """Map token lifecycle failures onto the JSON error contract."""
    if isinstance(exc, NotConnectedError):
        flags = {not_connected_flag: True} if not_connected_flag else {}
        return _failure(HTTPStatus.NOT_FOUND, exc.message, **flags)
    if isinstance(exc, TokenLifecycleError):
        return _failure(HTTPStatus.UNAUTHORIZED, exc.message, requiresReconnect=True)
    if isinstance(exc, ProviderUnavailableError):
        return _failure(HTTPStatus.BAD_GATEWAY, f"QuickBooks is unavailable: {exc}")
    if isinstance(exc, ConfigurationError):
        return _failure(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc))
    raise exc


def _frontend_redirect(settings: AppSettings, **params: str) -> RedirectResponse:
    target = f"{settings.frontend_url.rstrip('/')}/?{urlencode(params)}"
    return RedirectResponse(url=target, status_code=HTTPStatus.TEMPORARY_REDIRECT)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: AppSettings = SettingsDependency) -> dict:
    """Simple health endpoint for monitoring."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "quickbooksConfigured": settings.quickbooks.is_configured,
    }


@router.get("/oauth/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    flow: FlowDependency,
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the QuickBooks consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by issuing a state value and authorization URL.
    """
    fallback_redirect_uri = str(request.url_for("handle_oauth_callback"))
    try:
        auth_url, state = flow.build_authorization_url(
            fallback_redirect_uri=fallback_redirect_uri
        )
    except ConfigurationError as exc:
        logger.error("Cannot start QuickBooks authorization: %s", exc)
        return _failure(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc))

    if redirect:
        return RedirectResponse(url=auth_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return {"success": True, "authUrl": auth_url, "state": state}


@router.get("/oauth/callback", status_code=HTTPStatus.TEMPORARY_REDIRECT)
async def handle_oauth_callback(
    flow: FlowDependency,
    settings: AppSettings = SettingsDependency,
    code: Optional[str] = Query(default=None, description="Authorization code."),
    state: Optional[str] = Query(default=None, description="State issued at authorize time."),
    realm_id: Optional[str] = Query(default=None, alias="realmId"),
    error: Optional[str] = Query(default=None, description="Error reported by QuickBooks."),
) -> RedirectResponse:
    """Complete the OAuth exchange and send the browser back to the front-end."""
    try:
        outcome = await flow.handle_callback(
            code=code, state=state, tenant_id=realm_id, provider_error=error
        )
    except ConfigurationError as exc:
        logger.error("OAuth callback failed: %s", exc)
        return _frontend_redirect(settings, oauth_error=f"OAuth callback failed: {exc}")

    if isinstance(outcome, Connected):
        return _frontend_redirect(settings, oauth_success="true", realmId=outcome.tenant_id)
    return _frontend_redirect(settings, oauth_error=outcome.reason)


@router.get("/oauth/status", status_code=HTTPStatus.OK)
async def get_oauth_status(
    manager: ManagerDependency,
    realm_id: Optional[str] = Query(default=None, alias="realmId"),
) -> dict:
    """Report whether a realm is connected and how long its access token lasts."""
    if not realm_id:
        return {"success": True, "connected": False, "message": "No realmId provided"}

    status = manager.status(realm_id)
    if not status.connected:
        return {"success": True, "connected": False, "message": status.message}

    return {
        "success": True,
        "connected": True,
        "realmId": status.tenant_id,
        "environment": status.environment,
        "expiresAt": status.expires_at.isoformat() if status.expires_at else None,
        "expiresIn": status.expires_in,
        "needsRefresh": status.needs_refresh,
        "isExpired": status.is_expired,
        "refreshInFlight": status.refresh_in_flight,
    }


@router.post("/oauth/refresh", status_code=HTTPStatus.OK)
async def refresh_oauth_token(payload: TenantRequest, manager: ManagerDependency) -> Any:
    """Force a token refresh for a realm."""
    try:
        record = await manager.refresh(payload.tenant_id)
    except (TokenLifecycleError, ProviderUnavailableError, ConfigurationError) as exc:
        return _lifecycle_failure(exc)

    return {
        "success": True,
        "message": "Token refreshed successfully",
        "expiresIn": manager.status(record.tenant_id).expires_in,
    }


@router.get("/oauth/token", status_code=HTTPStatus.OK)
async def get_oauth_token(
    manager: ManagerDependency,
    realm_id: str = Query(..., alias="realmId"),
) -> Any:
    """Return a valid access token for a realm, refreshing it first when stale."""
    try:
        token = await manager.get_valid_access_token(realm_id)
    except (TokenLifecycleError, ProviderUnavailableError, ConfigurationError) as exc:
        return _lifecycle_failure(exc, not_connected_flag="requiresAuth")

    return {
        "success": True,
        "accessToken": token.value,
        "realmId": token.tenant_id,
        "expiresAt": token.expires_at.isoformat(),
        "expiresIn": token.expires_in,
    }


@router.post("/oauth/revoke", status_code=HTTPStatus.OK)
async def revoke_oauth_token(payload: TenantRequest, manager: ManagerDependency) -> dict:
    """Disconnect a realm. Succeeds even when the remote revoke call fails."""
    result = await manager.revoke(payload.tenant_id)
    message = "Tokens revoked successfully" if result.had_tokens else "No tokens found to revoke"
    return {"success": True, "message": message}


@router.get("/quickbooks/entities/{entity}/fields", status_code=HTTPStatus.OK)
async def get_entity_fields(
    entity: str,
    accounting_client: Annotated[
        QuickBooksAccountingClient, Depends(get_quickbooks_accounting_client)
    ],
    token: ResolvedToken = AccessTokenDependency,
) -> Any:
    """List the field paths available on a QuickBooks entity for rule authoring."""
    try:
        fields = await accounting_client.get_entity_fields(
            realm_id=token.realm_id, access_token=token.access_token, entity=entity
        )
    except ValueError as exc:
        return _failure(HTTPStatus.BAD_REQUEST, str(exc))
    except QuickBooksAPIError as exc:
        return _failure(HTTPStatus.BAD_GATEWAY, str(exc))
    return {"success": True, "realmId": token.realm_id, "entity": entity, "fields": fields}
