"""Token record storage keyed by tenant id."""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Protocol, Tuple

from app.models.oauth import TokenRecord


class TokenStore(Protocol):
    """Keyed storage for at most one ``TokenRecord`` per tenant."""

    def set(self, record: TokenRecord) -> None:
        ...

    def get(self, tenant_id: str) -> Optional[TokenRecord]:
        ...

    def delete(self, tenant_id: str) -> None:
        ...

    def entries(self) -> Iterator[Tuple[str, TokenRecord]]:
        ...


class InMemoryTokenStore:
    """Process-lifetime token storage."""

    def __init__(self) -> None:
        self._records: Dict[str, TokenRecord] = {}

    def set(self, record: TokenRecord) -> None:
        self._records[record.tenant_id] = record

    def get(self, tenant_id: str) -> Optional[TokenRecord]:
        return self._records.get(tenant_id)

    def delete(self, tenant_id: str) -> None:
        self._records.pop(tenant_id, None)

    def entries(self) -> Iterator[Tuple[str, TokenRecord]]:
        return iter(list(self._records.items()))


__all__ = ["InMemoryTokenStore", "TokenStore"]
