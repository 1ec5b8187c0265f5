"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenResponse(BaseModel):
    """Parsed body of a successful token endpoint response."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int
    scope: str = ""
    token_type: str = "bearer"


class Credential(BaseModel):
    """Access/refresh token pair held for a single user."""

    access_token: str
    refresh_token: str
    expires_in: int
    scope: str = ""
    token_type: str = "bearer"
    expires_at: Optional[datetime] = Field(
        None,
        description="Absolute expiry derived from expires_in at issuance time.",
    )

    @field_validator("expires_at")
    @classmethod
    def normalize_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @classmethod
    def issued(
        cls,
        response: TokenResponse,
        *,
        issued_at: datetime,
        fallback_refresh_token: Optional[str] = None,
    ) -> "Credential":
        """Build a credential from a token response received at ``issued_at``."""
        refresh_token = response.refresh_token or fallback_refresh_token
        if not refresh_token:
            raise ValueError("Token response did not include a refresh token.")
        return cls(
            access_token=response.access_token,
            refresh_token=refresh_token,
            expires_in=response.expires_in,
            scope=response.scope,
            token_type=response.token_type,
            expires_at=_as_utc(issued_at) + timedelta(seconds=response.expires_in),
        )


class StoredCredentialRecord(Credential):
    """Persisted form of a credential keyed by user id, with audit timestamps."""

    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_audit_timestamps(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_credential(
        cls,
        user_id: str,
        credential: Credential,
        *,
        created_at: Optional[datetime] = None,
    ) -> "StoredCredentialRecord":
        now = utcnow()
        return cls(
            user_id=user_id,
            created_at=created_at or now,
            updated_at=now,
            **credential.model_dump(),
        )

    def to_credential(self) -> Credential:
        return Credential(**self.model_dump(include=set(Credential.model_fields)))


class PendingAuthorization(BaseModel):
    """Session data bound to an outstanding authorization request."""

    state: str
    user_id: str
    code_verifier: str
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    def expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


__all__ = [
    "Credential",
    "PendingAuthorization",
    "StoredCredentialRecord",
    "TokenResponse",
    "utcnow",
]
