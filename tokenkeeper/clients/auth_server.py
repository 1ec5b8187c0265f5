"""
Authorization server token endpoint client.

Exchanges authorization codes and refresh tokens using HTTP Basic client
authentication. Requests are never retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from tokenkeeper.core.config import OAuthSettings
from tokenkeeper.core.errors import UpstreamError
from tokenkeeper.models.oauth import TokenResponse

logger = logging.getLogger(__name__)


class OAuthServerClient:
    """Talk to the authorization server's token endpoint."""

    def __init__(
        self,
        settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def exchange_code(
        self, code: str, *, redirect_uri: str, code_verifier: str
    ) -> TokenResponse:
        """Exchange an authorization code (with its PKCE verifier) for tokens."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        }
        token = await self._request_token(payload)
        if not token.refresh_token:
            raise UpstreamError(None, "Token response did not include a refresh token.")
        return token

    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        """Trade a refresh token for a new access token."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        return await self._request_token(payload)

    async def _request_token(self, payload: Dict[str, str]) -> TokenResponse:
        auth = httpx.BasicAuth(self._settings.client_id, self._settings.client_secret)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.token_url,
                    data=payload,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Token request to %s failed: %s", self._settings.token_url, exc)
            raise UpstreamError(None, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            raise UpstreamError(response.status_code, self._error_description(response))

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise UpstreamError(
                response.status_code, "Incomplete token payload returned by the server."
            ) from exc

    @staticmethod
    def _error_description(response: httpx.Response) -> str:
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            description = body.get("error_description") or body.get("error")
            if description:
                return str(description)
        return response.text or response.reason_phrase


__all__ = ["OAuthServerClient"]
