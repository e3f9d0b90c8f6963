from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.models.oauth import StateRecord
from app.services.state_store import OAuthStateStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _record(state: str, *, age: timedelta = timedelta(0)) -> StateRecord:
    return StateRecord(
        state=state,
        created_at=NOW - age,
        redirect_uri="https://example.com/api/oauth/callback",
    )


def test_consume_is_single_use() -> None:
    store = OAuthStateStore()
    store.set(_record("abc"))

    first = store.consume("abc", NOW)
    assert first is not None
    assert first.redirect_uri == "https://example.com/api/oauth/callback"

    assert store.consume("abc", NOW) is None
    assert len(store) == 0


def test_consume_rejects_state_older_than_ttl_even_before_purge() -> None:
    store = OAuthStateStore(ttl=timedelta(minutes=10))
    store.set(_record("stale", age=timedelta(minutes=10, seconds=1)))

    assert store.consume("stale", NOW) is None
    assert store.get("stale") is None


def test_consume_accepts_state_at_ttl_boundary() -> None:
    store = OAuthStateStore(ttl=timedelta(minutes=10))
    store.set(_record("edge", age=timedelta(minutes=10)))

    assert store.consume("edge", NOW) is not None


def test_purge_expired_only_drops_old_states() -> None:
    store = OAuthStateStore(ttl=timedelta(minutes=10))
    store.set(_record("fresh", age=timedelta(minutes=1)))
    store.set(_record("old-1", age=timedelta(minutes=11)))
    store.set(_record("old-2", age=timedelta(hours=2)))

    removed = store.purge_expired(NOW)

    assert removed == 2
    assert [state for state, _ in store.entries()] == ["fresh"]


def test_unknown_state_is_rejected() -> None:
    store = OAuthStateStore()
    assert store.consume("never-issued", NOW) is None
