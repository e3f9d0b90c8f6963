"""SQLite-backed token store for deployments that want records to survive restarts."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator, Optional, Tuple

from app.models.oauth import TokenRecord


class SQLiteTokenStore:
    """Token records serialized as JSON in a table keyed by tenant id."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth_tokens (
                    tenant_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def set(self, record: TokenRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth_tokens (tenant_id, data, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(tenant_id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (
                    record.tenant_id,
                    record.model_dump_json(),
                    record.updated_at.isoformat(),
                ),
            )

    def get(self, tenant_id: str) -> Optional[TokenRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM oauth_tokens WHERE tenant_id = ?",
                (tenant_id,),
            ).fetchone()
        if not row:
            return None
        return TokenRecord.model_validate_json(row["data"])

    def delete(self, tenant_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM oauth_tokens WHERE tenant_id = ?", (tenant_id,))

    def entries(self) -> Iterator[Tuple[str, TokenRecord]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT tenant_id, data FROM oauth_tokens ORDER BY tenant_id"
            ).fetchall()
        return iter(
            [(row["tenant_id"], TokenRecord.model_validate_json(row["data"])) for row in rows]
        )


__all__ = ["SQLiteTokenStore"]
