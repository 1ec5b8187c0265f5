"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AuthorizationRequest(BaseModel):
    """Result of starting an authorization: where to send the user and the PKCE secrets."""

    authorization_url: str
    state: str
    code_verifier: str


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by the authorization server.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class CredentialStatus(BaseModel):
    """Non-secret view of a stored credential."""

    user_id: str
    token_type: str
    scope: str
    expires_at: Optional[datetime] = None


__all__ = ["AuthorizationRequest", "CredentialStatus", "OAuthCallbackPayload"]
