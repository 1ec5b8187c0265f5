"""Credential store decorator that encrypts secrets at rest."""

from __future__ import annotations

from typing import Optional

from tokenkeeper.clients.base import CredentialStore
from tokenkeeper.models.oauth import Credential
from tokenkeeper.services.token_cipher import TokenCipherService


class EncryptingCredentialStore:
    """Wrap any credential store and encrypt the access and refresh tokens.

    Only the two secret fields are transformed; everything else is handed to
    the wrapped store untouched. Decryption errors propagate as
    ``DecryptionFailedError``.
    """

    def __init__(self, base_store: CredentialStore, cipher: TokenCipherService) -> None:
        self._base = base_store
        self._cipher = cipher

    @property
    def base_store(self) -> CredentialStore:
        return self._base

    def save(self, user_id: str, credential: Credential) -> None:
        self._base.save(user_id, self._encrypt(credential))

    def get(self, user_id: str) -> Optional[Credential]:
        stored = self._base.get(user_id)
        if stored is None:
            return None
        return self._decrypt(stored)

    def update(self, user_id: str, credential: Credential) -> None:
        self._base.update(user_id, self._encrypt(credential))

    def delete(self, user_id: str) -> None:
        self._base.delete(user_id)

    def _encrypt(self, credential: Credential) -> Credential:
        return credential.model_copy(
            update={
                "access_token": self._cipher.encrypt(credential.access_token),
                "refresh_token": self._cipher.encrypt(credential.refresh_token),
            }
        )

    def _decrypt(self, credential: Credential) -> Credential:
        return credential.model_copy(
            update={
                "access_token": self._cipher.decrypt(credential.access_token),
                "refresh_token": self._cipher.decrypt(credential.refresh_token),
            }
        )


__all__ = ["EncryptingCredentialStore"]
