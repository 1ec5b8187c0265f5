"""Symmetric authenticated encryption for protecting stored tokens."""

from __future__ import annotations

import os
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from tokenkeeper.core.errors import (
    DecryptionFailedError,
    InvalidKeyLengthError,
    MissingKeyError,
)


class TokenCipherService:
    """Encrypt and decrypt sensitive strings with AES-256-GCM.

    Ciphertexts are hex strings laid out as ``nonce | tag | ciphertext`` so
    that only the key is needed to decrypt them. Without a key the service
    passes values through unchanged, unless ``enforce`` is set.
    """

    KEY_LENGTH = 32
    NONCE_LENGTH = 16
    TAG_LENGTH = 16

    def __init__(
        self,
        *,
        key: Optional[Union[bytes, str]] = None,
        enforce: bool = False,
    ) -> None:
        if isinstance(key, str):
            key = self.key_from_string(key) if key else None
        if key is not None and len(key) != self.KEY_LENGTH:
            raise InvalidKeyLengthError(
                f"Encryption key must be {self.KEY_LENGTH} bytes "
                f"({self.KEY_LENGTH * 8} bits)."
            )
        if enforce and key is None:
            raise MissingKeyError(
                "Encryption key is required when encryption is enforced."
            )
        self._aesgcm = AESGCM(key) if key is not None else None

    @property
    def enabled(self) -> bool:
        """True when a key is configured and values are actually encrypted."""
        return self._aesgcm is not None

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the hex encoded blob."""
        if self._aesgcm is None:
            return plaintext
        nonce = os.urandom(self.NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[: -self.TAG_LENGTH], sealed[-self.TAG_LENGTH :]
        return (nonce + tag + ciphertext).hex()

    def decrypt(self, blob: str) -> str:
        """Decrypt a hex encoded blob produced by :meth:`encrypt`."""
        if self._aesgcm is None:
            return blob
        try:
            raw = bytes.fromhex(blob)
        except ValueError as exc:
            raise DecryptionFailedError("Ciphertext is not valid hex.") from exc

        header = self.NONCE_LENGTH + self.TAG_LENGTH
        if len(raw) < header:
            raise DecryptionFailedError("Ciphertext is too short.")

        nonce = raw[: self.NONCE_LENGTH]
        tag = raw[self.NONCE_LENGTH : header]
        ciphertext = raw[header:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as exc:
            raise DecryptionFailedError(
                "Failed to decrypt token; ciphertext was tampered with or the key is wrong."
            ) from exc

    @classmethod
    def generate_key(cls) -> bytes:
        """Return a random key suitable for AES-256-GCM."""
        return AESGCM.generate_key(bit_length=cls.KEY_LENGTH * 8)

    @staticmethod
    def key_to_string(key: bytes) -> str:
        return key.hex()

    @classmethod
    def key_from_string(cls, value: str) -> bytes:
        try:
            key = bytes.fromhex(value.strip())
        except ValueError as exc:
            raise InvalidKeyLengthError("Encryption key must be hex encoded.") from exc
        if len(key) != cls.KEY_LENGTH:
            raise InvalidKeyLengthError(
                f"Encryption key must be {cls.KEY_LENGTH} bytes "
                f"({cls.KEY_LENGTH * 8} bits)."
            )
        return key


__all__ = ["TokenCipherService"]
