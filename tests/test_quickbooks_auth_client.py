from __future__ import annotations

import base64
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients.quickbooks_auth import (
    OAuthTokenExchangeError,
    ProviderUnavailableError,
    QuickBooksOAuthClient,
)
from app.core.config import ConfigurationError, OAuthSettings, QuickBooksSettings

TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
REVOKE_URL = "https://developer.api.intuit.com/v2/oauth2/tokens/revoke"


def _settings(**overrides: str) -> QuickBooksSettings:
    values = {
        "QUICKBOOKS_CLIENT_ID": "client",
        "QUICKBOOKS_CLIENT_SECRET": "secret",
        "QUICKBOOKS_SCOPE": "com.intuit.quickbooks.accounting",
    }
    values.update(overrides)
    return QuickBooksSettings(**values)


def _client(handler, **overrides: str) -> QuickBooksOAuthClient:
    return QuickBooksOAuthClient(
        _settings(**overrides), OAuthSettings(), transport=httpx.MockTransport(handler)
    )


def test_authorization_url_carries_required_parameters() -> None:
    client = QuickBooksOAuthClient(_settings(), OAuthSettings())

    url = client.build_authorization_url(
        state="s" * 64, redirect_uri="https://example.com/api/oauth/callback"
    )

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
        "https://appcenter.intuit.com/connect/oauth2"
    )
    assert params == {
        "client_id": ["client"],
        "response_type": ["code"],
        "scope": ["com.intuit.quickbooks.accounting"],
        "redirect_uri": ["https://example.com/api/oauth/callback"],
        "state": ["s" * 64],
    }


def test_missing_credentials_raise_configuration_error() -> None:
    client = QuickBooksOAuthClient(
        _settings(QUICKBOOKS_CLIENT_ID="", QUICKBOOKS_CLIENT_SECRET=""), OAuthSettings()
    )
    with pytest.raises(ConfigurationError):
        client.build_authorization_url(state="s", redirect_uri="https://example.com/cb")


@pytest.mark.anyio
async def test_exchange_uses_basic_auth_and_form_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "access_token": "access",
                "refresh_token": "refresh",
                "expires_in": 3600,
                "x_refresh_token_expires_in": 8726400,
                "token_type": "bearer",
            },
        )

    grant = await _client(handler).exchange_authorization_code(
        code="auth-code", redirect_uri="https://example.com/api/oauth/callback"
    )

    assert grant.access_token == "access"
    assert grant.refresh_token == "refresh"
    assert grant.x_refresh_token_expires_in == 8726400

    request = seen[0]
    assert str(request.url) == TOKEN_URL
    expected_auth = base64.b64encode(b"client:secret").decode()
    assert request.headers["authorization"] == f"Basic {expected_auth}"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert parse_qs(request.content.decode()) == {
        "grant_type": ["authorization_code"],
        "code": ["auth-code"],
        "redirect_uri": ["https://example.com/api/oauth/callback"],
    }


@pytest.mark.anyio
async def test_refresh_allows_provider_to_skip_rotation() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert parse_qs(request.content.decode()) == {
            "grant_type": ["refresh_token"],
            "refresh_token": ["old-refresh"],
        }
        return httpx.Response(200, json={"access_token": "new-access", "expires_in": 3600})

    grant = await _client(handler).refresh_token("old-refresh", environment="production")

    assert grant.access_token == "new-access"
    assert grant.refresh_token is None


@pytest.mark.anyio
async def test_rejected_grant_surfaces_oauth_error_detail() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Token expired"}
        )

    with pytest.raises(OAuthTokenExchangeError) as excinfo:
        await _client(handler).refresh_token("old-refresh")

    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "invalid_grant: Token expired"


@pytest.mark.anyio
async def test_incomplete_payload_is_an_exchange_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "only-access", "expires_in": 3600})

    with pytest.raises(OAuthTokenExchangeError):
        await _client(handler).exchange_authorization_code(
            code="auth-code", redirect_uri="https://example.com/cb"
        )


@pytest.mark.anyio
async def test_transport_failure_is_provider_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(ProviderUnavailableError):
        await _client(handler).refresh_token("old-refresh")


@pytest.mark.anyio
async def test_revoke_posts_refresh_token_as_json() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    await _client(handler).revoke_token("refresh-token")

    assert str(seen[0].url) == REVOKE_URL
    assert json.loads(seen[0].content) == {"token": "refresh-token"}
    assert seen[0].headers["authorization"].startswith("Basic ")


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [500, 503, 429])
async def test_provider_outage_is_provider_unavailable(status_code: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text="Service Unavailable")

    with pytest.raises(ProviderUnavailableError, match=str(status_code)):
        await _client(handler).refresh_token("old-refresh")


@pytest.mark.anyio
async def test_unusable_refresh_payload_is_provider_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(ProviderUnavailableError):
        await _client(handler).refresh_token("old-refresh")


@pytest.mark.anyio
async def test_revoke_outage_is_provider_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    with pytest.raises(ProviderUnavailableError):
        await _client(handler).revoke_token("refresh-token")
