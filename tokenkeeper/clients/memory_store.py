"""Process-local credential store, mostly useful for tests and development."""

from __future__ import annotations

import threading
from typing import Dict, Optional

from tokenkeeper.core.errors import OAuthTokenNotFoundError
from tokenkeeper.models.oauth import Credential, StoredCredentialRecord


class InMemoryCredentialStore:
    """Keep credentials in a dict; contents are lost when the process exits."""

    def __init__(self) -> None:
        self._records: Dict[str, StoredCredentialRecord] = {}
        self._lock = threading.Lock()

    def save(self, user_id: str, credential: Credential) -> None:
        with self._lock:
            existing = self._records.get(user_id)
            self._records[user_id] = StoredCredentialRecord.from_credential(
                user_id,
                credential,
                created_at=existing.created_at if existing else None,
            )

    def get(self, user_id: str) -> Optional[Credential]:
        record = self._records.get(user_id)
        if record is None:
            return None
        return record.to_credential()

    def update(self, user_id: str, credential: Credential) -> None:
        with self._lock:
            existing = self._records.get(user_id)
            if existing is None:
                raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")
            self._records[user_id] = StoredCredentialRecord.from_credential(
                user_id, credential, created_at=existing.created_at
            )

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._records.pop(user_id, None)

    def get_record(self, user_id: str) -> Optional[StoredCredentialRecord]:
        """Return the raw stored record, including audit timestamps."""
        return self._records.get(user_id)


__all__ = ["InMemoryCredentialStore"]
