"""
QuickBooks Online OAuth2 utilities.

These helpers build the consent URL and talk to the Intuit token and revoke
endpoints. They hold no token state; that lives in the services layer.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import status
from pydantic import ValidationError

from app.core.config import OAuthSettings, QuickBooksSettings
from app.models.oauth import TokenGrant


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint rejects a grant (4xx such as ``invalid_grant``)."""

    def __init__(self, detail: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class ProviderUnavailableError(Exception):
    """
    Raised when the provider could not be reached, is failing (5xx, 429) or
    answered with an unusable payload. The credentials themselves are not in doubt.
    """


class QuickBooksOAuthClient:
    """Build QuickBooks authorization URLs and perform token endpoint grants."""

    ENDPOINTS = {
        "sandbox": {
            "auth_url": "https://appcenter.intuit.com/connect/oauth2",
            "token_url": "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer",
            "revoke_url": "https://developer.api.intuit.com/v2/oauth2/tokens/revoke",
        },
        "production": {
            "auth_url": "https://appcenter.intuit.com/connect/oauth2",
            "token_url": "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer",
            "revoke_url": "https://developer.api.intuit.com/v2/oauth2/tokens/revoke",
        },
    }

    def __init__(
        self,
        quickbooks_settings: QuickBooksSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._quickbooks = quickbooks_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def environment(self) -> str:
        """Environment newly authorized tenants are bound to."""
        return self._quickbooks.environment

    def _endpoints(self, environment: Optional[str]) -> dict[str, str]:
        return self.ENDPOINTS.get(environment or self.environment, self.ENDPOINTS["sandbox"])

    def _client(self) -> httpx.AsyncClient:
        client_id, client_secret = self._quickbooks.require_credentials()
        return httpx.AsyncClient(
            auth=httpx.BasicAuth(client_id, client_secret),
            headers={"Accept": "application/json"},
            timeout=self._oauth.http_timeout_seconds,
            transport=self._transport,
        )

    def build_authorization_url(self, *, state: str, redirect_uri: str) -> str:
        """Construct the Intuit consent URL."""
        client_id, _ = self._quickbooks.require_credentials()
        params = {
            "client_id": client_id,
            "response_type": "code",
            "scope": self._quickbooks.scope,
            "redirect_uri": redirect_uri,
            "state": state,
        }
        return f"{self._endpoints(None)['auth_url']}?{urlencode(params)}"

    async def exchange_authorization_code(
        self, *, code: str, redirect_uri: str
    ) -> TokenGrant:
        """
        Exchange an authorization code for an initial token pair.

        ``redirect_uri`` must be the value sent on the authorization request.
        """
        grant = await self._post_grant(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            },
            environment=None,
        )
        if not grant.refresh_token:
            raise OAuthTokenExchangeError(
                "Incomplete token payload returned from QuickBooks: no refresh token."
            )
        return grant

    async def refresh_token(
        self, refresh_token: str, *, environment: Optional[str] = None
    ) -> TokenGrant:
        """Refresh the access token. The response may omit a rotated refresh token."""
        return await self._post_grant(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            environment=environment,
        )

    async def revoke_token(self, token: str, *, environment: Optional[str] = None) -> None:
        """Revoke a refresh (or access) token at the provider."""
        url = self._endpoints(environment)["revoke_url"]
        try:
            async with self._client() as client:
                response = await client.post(url, json={"token": token})
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"Revoke request failed: {exc}") from exc

        _raise_if_unavailable(response)
        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )

    async def _post_grant(self, payload: dict[str, str], *, environment: Optional[str]) -> TokenGrant:
        url = self._endpoints(environment)["token_url"]
        try:
            async with self._client() as client:
                response = await client.post(url, data=payload)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"Token request failed: {exc}") from exc

        _raise_if_unavailable(response)
        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(
                _error_detail(response), status_code=response.status_code
            )

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderUnavailableError(
                "Unusable token payload returned from QuickBooks."
            ) from exc


def _raise_if_unavailable(response: httpx.Response) -> None:
    if response.is_server_error or response.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        raise ProviderUnavailableError(
            f"QuickBooks token service returned {response.status_code}: {_error_detail(response)}"
        )


def _error_detail(response: httpx.Response) -> str:
    """Prefer the OAuth ``error`` / ``error_description`` fields over the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        description = body.get("error_description")
        return f"{body['error']}: {description}" if description else str(body["error"])
    return response.text or response.reason_phrase


__all__ = [
    "OAuthTokenExchangeError",
    "ProviderUnavailableError",
    "QuickBooksOAuthClient",
]
