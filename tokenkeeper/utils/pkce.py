"""
PKCE (RFC 7636) helpers: code verifiers, S256 challenges, and state tokens.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from base64 import urlsafe_b64encode
from typing import Optional
from urllib.parse import urlencode

from tokenkeeper.core.errors import InvalidParameterError

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64

# RFC 7636 section 4.1: unreserved characters only.
_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]+$")


def new_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Return a random URL-safe code verifier of exactly ``length`` characters."""
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise InvalidParameterError(
            f"Code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH} characters."
        )
    # token_urlsafe(n) yields roughly 1.3 * n characters.
    return secrets.token_urlsafe(length)[:length]


def challenge_from(verifier: str) -> str:
    """Derive the S256 code challenge for ``verifier``."""
    if not verifier or not MIN_VERIFIER_LENGTH <= len(verifier) <= MAX_VERIFIER_LENGTH:
        raise InvalidParameterError("Invalid code verifier length.")
    if not _VERIFIER_PATTERN.match(verifier):
        raise InvalidParameterError("Code verifier contains invalid characters.")
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def new_state() -> str:
    """Opaque value for CSRF protection; 256 bits of entropy, hex encoded."""
    return secrets.token_hex(32)


def verify(verifier: str, challenge: str) -> bool:
    """Check that ``challenge`` was derived from ``verifier`` in constant time."""
    if not verifier or not challenge:
        return False
    try:
        expected = challenge_from(verifier)
    except InvalidParameterError:
        return False
    return hmac.compare_digest(expected.encode("ascii"), challenge.encode("utf-8"))


def build_authorize_url(
    *,
    base_url: str,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str,
    code_challenge: str,
    extra_params: Optional[dict[str, str]] = None,
) -> str:
    """Build the authorization endpoint URL with the S256 PKCE parameters."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    if extra_params:
        params.update(extra_params)
    return f"{base_url}?{urlencode(params)}"


__all__ = [
    "DEFAULT_VERIFIER_LENGTH",
    "MAX_VERIFIER_LENGTH",
    "MIN_VERIFIER_LENGTH",
    "build_authorize_url",
    "challenge_from",
    "new_state",
    "new_verifier",
    "verify",
]
