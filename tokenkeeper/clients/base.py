"""Capability interface shared by every credential store backend."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from tokenkeeper.models.oauth import Credential


@runtime_checkable
class CredentialStore(Protocol):
    """Durable mapping from user id to a single credential set.

    Writes are last-write-wins per user id. ``update`` replaces an existing
    record and raises ``OAuthTokenNotFoundError`` when there is none.
    """

    def save(self, user_id: str, credential: Credential) -> None:
        ...

    def get(self, user_id: str) -> Optional[Credential]:
        ...

    def update(self, user_id: str, credential: Credential) -> None:
        ...

    def delete(self, user_id: str) -> None:
        ...


__all__ = ["CredentialStore"]
