"""
DynamoDB credential store: one item per user under a fixed sort key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from tokenkeeper.core.config import StorageSettings
from tokenkeeper.core.errors import OAuthTokenNotFoundError
from tokenkeeper.models.oauth import Credential, StoredCredentialRecord, utcnow


class DynamoDBCredentialStore:
    """Credential storage on a ``pk``/``sk`` keyed DynamoDB table."""

    SORT_KEY = "oauth#credential"

    def __init__(self, settings: StorageSettings, *, table: Any = None) -> None:
        if table is None:
            if not settings.dynamodb_table_name:
                raise ValueError("DYNAMODB_TABLE_NAME must be set for the dynamodb backend.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    @staticmethod
    def _key(user_id: str) -> Dict[str, str]:
        return {"pk": f"user#{user_id}", "sk": DynamoDBCredentialStore.SORT_KEY}

    def _item(self, user_id: str, credential: Credential, *, created_at: str) -> Dict[str, Any]:
        return {
            **self._key(user_id),
            "user_id": user_id,
            "access_token": credential.access_token,
            "refresh_token": credential.refresh_token,
            "expires_in": credential.expires_in,
            "scope": credential.scope,
            "token_type": credential.token_type,
            "expires_at": credential.expires_at.isoformat() if credential.expires_at else None,
            "created_at": created_at,
            "updated_at": utcnow().isoformat(),
        }

    def save(self, user_id: str, credential: Credential) -> None:
        existing = self._table.get_item(Key=self._key(user_id)).get("Item")
        created_at = existing["created_at"] if existing else utcnow().isoformat()
        self._table.put_item(Item=self._item(user_id, credential, created_at=created_at))

    def get(self, user_id: str) -> Optional[Credential]:
        record = self.get_record(user_id)
        if record is None:
            return None
        return record.to_credential()

    def get_record(self, user_id: str) -> Optional[StoredCredentialRecord]:
        item = self._table.get_item(Key=self._key(user_id)).get("Item")
        if not item:
            return None
        expires_at = item.get("expires_at")
        return StoredCredentialRecord(
            user_id=item["user_id"],
            access_token=item["access_token"],
            refresh_token=item["refresh_token"],
            expires_in=int(item["expires_in"]),
            scope=item.get("scope", ""),
            token_type=item.get("token_type", "bearer"),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )

    def update(self, user_id: str, credential: Credential) -> None:
        existing = self._table.get_item(Key=self._key(user_id)).get("Item")
        if not existing:
            raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")
        item = self._item(user_id, credential, created_at=existing["created_at"])
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise OAuthTokenNotFoundError(
                    f"No OAuth token stored for user {user_id}."
                ) from exc
            raise

    def delete(self, user_id: str) -> None:
        self._table.delete_item(Key=self._key(user_id))


__all__ = ["DynamoDBCredentialStore"]
