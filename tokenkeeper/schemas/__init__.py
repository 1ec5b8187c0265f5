"""Public schema exports."""

from .auth import AuthorizationRequest, CredentialStatus, OAuthCallbackPayload

__all__ = [
    "AuthorizationRequest",
    "CredentialStatus",
    "OAuthCallbackPayload",
]
