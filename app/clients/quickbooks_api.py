"""
Minimal QuickBooks Online accounting API client.

Used to discover which fields an entity (Expense, Invoice, ...) exposes so
rules can be written against real field paths.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import httpx


class QuickBooksAPIError(RuntimeError):
    """Raised when the accounting API returns an error or a ``Fault`` payload."""


_ENTITY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")


def extract_field_paths(payload: Dict[str, Any], prefix: str = "") -> List[str]:
    """
    Flatten a record into dotted field paths.

    Nested objects are walked; an array of objects contributes the paths of
    its first element under the array's own path.
    """
    paths: List[str] = []
    for key, value in payload.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and value:
            paths.extend(extract_field_paths(value, path))
        elif isinstance(value, list) and value and isinstance(value[0], dict):
            paths.extend(extract_field_paths(value[0], path))
        else:
            paths.append(path)
    return paths


def _fault_message(payload: Dict[str, Any]) -> Optional[str]:
    fault = payload.get("Fault")
    if not fault:
        return None
    errors = fault.get("Error") or [{}]
    message = errors[0].get("Message") or "Unknown QuickBooks API error"
    detail = errors[0].get("Detail")
    return f"{message}: {detail}" if detail else message


class QuickBooksAccountingClient:
    """Query the QuickBooks accounting API with a caller-supplied bearer token."""

    BASE_URLS = {
        "sandbox": "https://sandbox-quickbooks.api.intuit.com",
        "production": "https://quickbooks.api.intuit.com",
    }

    def __init__(
        self,
        *,
        environment: str = "sandbox",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = self.BASE_URLS.get(environment, self.BASE_URLS["sandbox"])
        self._timeout = timeout
        self._transport = transport

    async def query(self, *, realm_id: str, access_token: str, statement: str) -> Dict[str, Any]:
        """Run a QuickBooks query statement and return the ``QueryResponse`` body."""
        url = f"{self._base_url}/v3/company/{realm_id}/query"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url,
                    params={"query": statement},
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as exc:
            raise QuickBooksAPIError(f"QuickBooks API request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        fault = _fault_message(payload) if isinstance(payload, dict) else None
        if response.is_error:
            raise QuickBooksAPIError(
                f"QuickBooks API error: {fault or f'{response.status_code} {response.reason_phrase}'}"
            )
        if fault:
            raise QuickBooksAPIError(f"QuickBooks API error: {fault}")
        return payload.get("QueryResponse") or {}

    async def get_entity_fields(
        self, *, realm_id: str, access_token: str, entity: str
    ) -> List[str]:
        """Return the field paths of the first ``entity`` record in the company."""
        if not _ENTITY_PATTERN.match(entity):
            raise ValueError(f"Invalid QuickBooks entity name: {entity!r}")

        result = await self.query(
            realm_id=realm_id,
            access_token=access_token,
            statement=f"SELECT * FROM {entity}",
        )
        records = result.get(entity) or []
        if not records:
            raise QuickBooksAPIError(f"No records found for entity: {entity}")
        return extract_field_paths(records[0])


__all__ = ["QuickBooksAPIError", "QuickBooksAccountingClient", "extract_field_paths"]
