from __future__ import annotations

import httpx
import pytest

from app.clients.quickbooks_api import (
    QuickBooksAPIError,
    QuickBooksAccountingClient,
    extract_field_paths,
)

INVOICE = {
    "Id": "130",
    "TotalAmt": 362.07,
    "CustomerRef": {"value": "1", "name": "Amy's Bird Sanctuary"},
    "Line": [
        {
            "Amount": 275.0,
            "SalesItemLineDetail": {"ItemRef": {"value": "5", "name": "Rock Fountain"}},
        },
        {"Amount": 87.07},
    ],
    "CustomField": [],
    "MetaData": {},
}


def test_extract_field_paths_walks_objects_and_first_array_element() -> None:
    assert extract_field_paths(INVOICE) == [
        "Id",
        "TotalAmt",
        "CustomerRef.value",
        "CustomerRef.name",
        "Line.Amount",
        "Line.SalesItemLineDetail.ItemRef.value",
        "Line.SalesItemLineDetail.ItemRef.name",
        "CustomField",
        "MetaData",
    ]


def _client(handler) -> QuickBooksAccountingClient:
    return QuickBooksAccountingClient(
        environment="sandbox", transport=httpx.MockTransport(handler)
    )


@pytest.mark.anyio
async def test_get_entity_fields_queries_company_with_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"QueryResponse": {"Invoice": [INVOICE]}})

    fields = await _client(handler).get_entity_fields(
        realm_id="4620816365", access_token="tok", entity="Invoice"
    )

    request = seen[0]
    assert request.url.host == "sandbox-quickbooks.api.intuit.com"
    assert request.url.path == "/v3/company/4620816365/query"
    assert request.url.params["query"] == "SELECT * FROM Invoice"
    assert request.headers["Authorization"] == "Bearer tok"
    assert "CustomerRef.name" in fields


@pytest.mark.anyio
async def test_get_entity_fields_rejects_unsafe_entity_names() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    with pytest.raises(ValueError):
        await _client(handler).get_entity_fields(
            realm_id="1", access_token="tok", entity="Invoice WHERE 1=1"
        )


@pytest.mark.anyio
async def test_get_entity_fields_without_records_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"QueryResponse": {}})

    with pytest.raises(QuickBooksAPIError, match="No records found for entity: Bill"):
        await _client(handler).get_entity_fields(realm_id="1", access_token="tok", entity="Bill")


@pytest.mark.anyio
async def test_fault_payload_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401,
            json={
                "Fault": {
                    "Error": [{"Message": "AuthenticationFailed", "Detail": "Token expired"}],
                    "type": "AUTHENTICATION",
                }
            },
        )

    with pytest.raises(QuickBooksAPIError, match="AuthenticationFailed: Token expired"):
        await _client(handler).query(realm_id="1", access_token="tok", statement="SELECT 1")


@pytest.mark.anyio
async def test_transport_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(QuickBooksAPIError, match="request failed"):
        await _client(handler).query(realm_id="1", access_token="tok", statement="SELECT 1")
