"""SQLite-backed credential storage, one row per user."""

from __future__ import annotations

import re
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Optional

from tokenkeeper.core.errors import OAuthTokenNotFoundError
from tokenkeeper.models.oauth import Credential, StoredCredentialRecord, utcnow

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteCredentialStore:
    """Relational credential store keyed by ``user_id``.

    ``save`` upserts, ``update`` rewrites the existing row in place, and
    ``delete`` removes the row outright.
    """

    def __init__(self, db_path: str, *, table_name: str = "oauth_credentials") -> None:
        if not _TABLE_NAME_PATTERN.match(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")
        self._table = table_name
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    user_id TEXT PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    expires_in INTEGER NOT NULL,
                    scope TEXT NOT NULL,
                    token_type TEXT NOT NULL,
                    expires_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def save(self, user_id: str, credential: Credential) -> None:
        now = utcnow().isoformat()
        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"""
                INSERT INTO {self._table} (
                    user_id, access_token, refresh_token, expires_in,
                    scope, token_type, expires_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = excluded.refresh_token,
                    expires_in = excluded.expires_in,
                    scope = excluded.scope,
                    token_type = excluded.token_type,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (user_id, *self._columns(credential), now, now),
            )

    def get(self, user_id: str) -> Optional[Credential]:
        record = self.get_record(user_id)
        if record is None:
            return None
        return record.to_credential()

    def get_record(self, user_id: str) -> Optional[StoredCredentialRecord]:
        """Return the raw stored row, including audit timestamps."""
        with closing(self._connect()) as conn, conn:
            row = conn.execute(
                f"SELECT * FROM {self._table} WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        expires_at = row["expires_at"]
        return StoredCredentialRecord(
            user_id=row["user_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_in=row["expires_in"],
            scope=row["scope"],
            token_type=row["token_type"],
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def update(self, user_id: str, credential: Credential) -> None:
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute(
                f"""
                UPDATE {self._table}
                SET access_token = ?,
                    refresh_token = ?,
                    expires_in = ?,
                    scope = ?,
                    token_type = ?,
                    expires_at = ?,
                    updated_at = ?
                WHERE user_id = ?
                """,
                (*self._columns(credential), utcnow().isoformat(), user_id),
            )
            updated = cursor.rowcount
        if updated == 0:
            raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")

    def delete(self, user_id: str) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(f"DELETE FROM {self._table} WHERE user_id = ?", (user_id,))

    @staticmethod
    def _columns(credential: Credential) -> tuple:
        return (
            credential.access_token,
            credential.refresh_token,
            credential.expires_in,
            credential.scope,
            credential.token_type,
            credential.expires_at.isoformat() if credential.expires_at else None,
        )


__all__ = ["SQLiteCredentialStore"]
