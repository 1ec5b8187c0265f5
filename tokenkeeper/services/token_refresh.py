"""
Helpers for retrieving and refreshing stored OAuth credentials.

Refreshes are single-flight per user: the first caller that needs a refresh
starts one task, and every caller arriving while it runs awaits that same
task, receiving its credential or its exception.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Protocol

from tokenkeeper.clients.base import CredentialStore
from tokenkeeper.core.errors import OAuthTokenNotFoundError, TokenRefreshError, UpstreamError
from tokenkeeper.models.oauth import Credential, TokenResponse, utcnow

logger = logging.getLogger(__name__)


class RefreshTokenClient(Protocol):
    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        ...


class TokenRefreshService:
    """Hands out valid credentials, refreshing them when they are about to expire."""

    DEFAULT_REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: RefreshTokenClient,
        *,
        refresh_window: timedelta = DEFAULT_REFRESH_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._refresh_window = refresh_window
        self._clock = clock
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def get_credential(self, *, user_id: str) -> Optional[Credential]:
        """Return the stored credential as-is, without any expiry check."""
        return self._store.get(user_id)

    def is_expired(self, credential: Credential) -> bool:
        """True when the credential is expired or inside the refresh window."""
        if credential.expires_at is None:
            return True
        return credential.expires_at <= self._clock() + self._refresh_window

    async def get_valid_credential(self, *, user_id: str) -> Credential:
        """Retrieve the credential for a user, refreshing tokens when necessary."""
        credential = self._store.get(user_id)
        if credential is None:
            raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")
        if not self.is_expired(credential):
            return credential
        return await self.refresh(user_id=user_id)

    async def refresh(self, *, user_id: str) -> Credential:
        """Refresh the user's tokens, joining a refresh already in flight."""
        task = self._in_flight.get(user_id)
        if task is None:
            logger.info("Refreshing OAuth token for user %s", user_id)
            task = asyncio.ensure_future(self._refresh(user_id))
            self._in_flight[user_id] = task
            task.add_done_callback(lambda done: self._forget(user_id, done))
        else:
            logger.debug("Joining in-flight token refresh for user %s", user_id)
        # A cancelled caller must not cancel the refresh other callers wait on.
        return await asyncio.shield(task)

    def is_refreshing(self, user_id: str) -> bool:
        task = self._in_flight.get(user_id)
        return task is not None and not task.done()

    async def revoke(self, *, user_id: str) -> None:
        """Delete the stored credential; a no-op when none exists."""
        self._store.delete(user_id)
        logger.info("Revoked OAuth credential for user %s", user_id)

    async def rotate_encryption(self, *, user_id: str, target: CredentialStore) -> bool:
        """Re-save the user's credential through ``target``.

        ``target`` is typically an encrypting store built with a new key over
        the same backend. Returns False when there is nothing to rotate.
        """
        credential = self._store.get(user_id)
        if credential is None:
            return False
        target.save(user_id, credential)
        logger.info("Rotated token encryption for user %s", user_id)
        return True

    async def _refresh(self, user_id: str) -> Credential:
        credential = self._store.get(user_id)
        if credential is None:
            raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")

        refreshed_at = self._clock()
        try:
            response = await self._oauth.exchange_refresh_token(credential.refresh_token)
        except UpstreamError as exc:
            logger.warning("Token refresh failed for user %s: %s", user_id, exc)
            raise TokenRefreshError(exc.status_code, exc.description) from exc

        refreshed = Credential.issued(
            response,
            issued_at=refreshed_at,
            fallback_refresh_token=credential.refresh_token,
        )
        self._store.update(user_id, refreshed)
        logger.info("Refreshed OAuth token for user %s", user_id)
        return refreshed

    def _forget(self, user_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(user_id) is task:
            del self._in_flight[user_id]
        if not task.cancelled():
            # Mark the exception as retrieved even if every caller went away.
            task.exception()


__all__ = ["RefreshTokenClient", "TokenRefreshService"]
