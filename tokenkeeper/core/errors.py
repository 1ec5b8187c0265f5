"""
Exception types raised by the credential lifecycle services.
"""

from __future__ import annotations

from typing import Optional


class TokenKeeperError(Exception):
    """Base class for every error raised by tokenkeeper."""


class InvalidParameterError(TokenKeeperError, ValueError):
    """Raised when a PKCE input is malformed or out of range."""


class OAuthTokenNotFoundError(TokenKeeperError):
    """Raised when no persisted OAuth credential is available for a user."""


class OAuthStateError(TokenKeeperError):
    """Raised when a callback state is missing, expired, or already used."""


class UpstreamError(TokenKeeperError):
    """Raised when the authorization server rejects a token request."""

    def __init__(self, status_code: Optional[int], description: str) -> None:
        self.status_code = status_code
        self.description = description
        prefix = f"HTTP {status_code}" if status_code is not None else "Transport error"
        super().__init__(f"{prefix}: {description}")


class OAuthTokenExchangeError(UpstreamError):
    """Raised when an authorization code cannot be exchanged for tokens."""


class TokenRefreshError(UpstreamError):
    """Raised when a refresh token exchange fails."""


class EncryptionConfigError(TokenKeeperError):
    """Raised when token encryption is misconfigured."""


class MissingKeyError(EncryptionConfigError):
    """Raised when encryption is enforced but no key was supplied."""


class InvalidKeyLengthError(EncryptionConfigError):
    """Raised when an encryption key is not exactly 32 bytes."""


class DecryptionFailedError(TokenKeeperError):
    """Raised when a ciphertext is malformed, tampered with, or keyed differently."""


__all__ = [
    "DecryptionFailedError",
    "EncryptionConfigError",
    "InvalidKeyLengthError",
    "InvalidParameterError",
    "MissingKeyError",
    "OAuthStateError",
    "OAuthTokenExchangeError",
    "OAuthTokenNotFoundError",
    "TokenKeeperError",
    "TokenRefreshError",
    "UpstreamError",
]
