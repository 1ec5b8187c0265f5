"""
Authorization Code + PKCE flow: building consent URLs and completing callbacks.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Protocol

from pydantic import ValidationError

from tokenkeeper.clients.base import CredentialStore
from tokenkeeper.core.config import OAuthSettings
from tokenkeeper.core.errors import OAuthStateError, OAuthTokenExchangeError, UpstreamError
from tokenkeeper.models.oauth import Credential, PendingAuthorization, TokenResponse, utcnow
from tokenkeeper.schemas.auth import AuthorizationRequest
from tokenkeeper.services.state_registry import StateRegistry
from tokenkeeper.utils import pkce

logger = logging.getLogger(__name__)


class CodeExchangeClient(Protocol):
    async def exchange_code(
        self, code: str, *, redirect_uri: str, code_verifier: str
    ) -> TokenResponse:
        ...


class AuthorizationFlowService:
    """Issue authorization requests and turn callbacks into stored credentials."""

    def __init__(
        self,
        settings: OAuthSettings,
        state_registry: StateRegistry,
        store: CredentialStore,
        oauth_client: CodeExchangeClient,
    ) -> None:
        self._settings = settings
        self._states = state_registry
        self._store = store
        self._oauth = oauth_client

    def begin(
        self,
        user_id: str,
        *,
        state: Optional[str] = None,
        code_verifier: Optional[str] = None,
    ) -> AuthorizationRequest:
        """Create a pending authorization and the URL to send the user to.

        ``state`` and ``code_verifier`` may be supplied for deterministic tests.
        """
        state = state or pkce.new_state()
        code_verifier = code_verifier or pkce.new_verifier()
        code_challenge = pkce.challenge_from(code_verifier)

        ttl = self._states.default_ttl_seconds
        created_at = utcnow()
        pending = PendingAuthorization(
            state=state,
            user_id=user_id,
            code_verifier=code_verifier,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl),
        )
        self._states.save(state, pending.model_dump_json(), ttl)

        authorization_url = pkce.build_authorize_url(
            base_url=self._settings.authorize_url,
            client_id=self._settings.client_id,
            redirect_uri=str(self._settings.redirect_uri),
            scope=" ".join(self._settings.scopes),
            state=state,
            code_challenge=code_challenge,
        )
        logger.info("Started OAuth authorization for user %s", user_id)
        return AuthorizationRequest(
            authorization_url=authorization_url,
            state=state,
            code_verifier=code_verifier,
        )

    def resolve_state(self, state: str) -> Optional[PendingAuthorization]:
        """Consume ``state``; returns None when missing, expired, or malformed."""
        payload = self._states.take(state)
        if payload is None:
            return None
        try:
            return PendingAuthorization.model_validate_json(payload)
        except ValidationError:
            logger.warning("Discarding malformed OAuth state payload")
            return None

    async def complete(self, *, user_id: str, code: str, code_verifier: str) -> Credential:
        """Exchange an authorization code for tokens and persist them."""
        issued_at = utcnow()
        try:
            response = await self._oauth.exchange_code(
                code,
                redirect_uri=str(self._settings.redirect_uri),
                code_verifier=code_verifier,
            )
            credential = Credential.issued(response, issued_at=issued_at)
        except UpstreamError as exc:
            logger.warning("Authorization code exchange failed for user %s: %s", user_id, exc)
            raise OAuthTokenExchangeError(exc.status_code, exc.description) from exc
        except ValueError as exc:
            raise OAuthTokenExchangeError(None, str(exc)) from exc

        self._store.save(user_id, credential)
        logger.info("Stored OAuth credential for user %s", user_id)
        return credential

    async def handle_callback(self, *, state: str, code: str) -> tuple[str, Credential]:
        """Validate the callback state and complete the exchange.

        Returns ``(user_id, credential)``.
        """
        pending = self.resolve_state(state)
        if pending is None:
            logger.warning("Rejected OAuth callback with unknown or expired state")
            raise OAuthStateError("OAuth state is invalid, expired, or already used.")
        credential = await self.complete(
            user_id=pending.user_id,
            code=code,
            code_verifier=pending.code_verifier,
        )
        return pending.user_id, credential


__all__ = ["AuthorizationFlowService", "CodeExchangeClient"]
