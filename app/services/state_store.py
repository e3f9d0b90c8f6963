"""
In-memory store for OAuth CSRF state values.

States are single use and expire after a fixed TTL whether or not they were
presented. Every operation is synchronous, so inside one event loop a
``consume`` can never interleave with another ``consume`` of the same state.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional, Tuple

from app.models.oauth import StateRecord


class OAuthStateStore:
    """Maps issued state values to the authorization attempt they belong to."""

    def __init__(self, *, ttl: timedelta = timedelta(minutes=10)) -> None:
        self._ttl = ttl
        self._records: Dict[str, StateRecord] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def set(self, record: StateRecord) -> None:
        self._records[record.state] = record

    def get(self, state: str) -> Optional[StateRecord]:
        return self._records.get(state)

    def delete(self, state: str) -> None:
        self._records.pop(state, None)

    def entries(self) -> Iterator[Tuple[str, StateRecord]]:
        # Copy so callers may delete while iterating.
        return iter(list(self._records.items()))

    def purge_expired(self, now: datetime) -> int:
        """Drop every state older than the TTL; returns how many were removed."""
        expired = [
            state for state, record in self.entries() if record.is_expired(now, self._ttl)
        ]
        for state in expired:
            self.delete(state)
        return len(expired)

    def consume(self, state: str, now: datetime) -> Optional[StateRecord]:
        """
        Remove and return the record for ``state``.

        Returns ``None`` when the state is unknown, already consumed, or older
        than the TTL (an expired record is dropped as a side effect).
        """
        record = self._records.pop(state, None)
        if record is None or record.is_expired(now, self._ttl):
            return None
        return record

    def __len__(self) -> int:
        return len(self._records)


__all__ = ["OAuthStateStore"]
