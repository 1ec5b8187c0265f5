"""Tests for the token endpoint client using httpx.MockTransport."""

from __future__ import annotations

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from tokenkeeper.clients.auth_server import OAuthServerClient
from tokenkeeper.core.config import OAuthSettings
from tokenkeeper.core.errors import UpstreamError


@pytest.fixture()
def settings() -> OAuthSettings:
    return OAuthSettings(
        OAUTH_CLIENT_ID="client",
        OAUTH_CLIENT_SECRET="secret",
        OAUTH_REDIRECT_URI="https://example.com/callback",
        OAUTH_AUTH_BASE_URL="https://auth.example.com/oauth-v1",
    )


class RecordingHandler:
    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def form(self) -> dict[str, list[str]]:
        return parse_qs(self.requests[-1].content.decode("utf-8"))


TOKEN_BODY = {
    "access_token": "access",
    "refresh_token": "refresh",
    "expires_in": 3600,
    "scope": "companyinformation",
    "token_type": "bearer",
}


@pytest.mark.asyncio
async def test_exchange_code_posts_pkce_grant_with_basic_auth(settings) -> None:
    handler = RecordingHandler(httpx.Response(200, json=TOKEN_BODY))
    client = OAuthServerClient(settings, transport=httpx.MockTransport(handler))

    token = await client.exchange_code(
        "auth-code",
        redirect_uri="https://example.com/callback",
        code_verifier="verifier",
    )

    request = handler.requests[-1]
    assert str(request.url) == "https://auth.example.com/oauth-v1/token"
    expected_auth = base64.b64encode(b"client:secret").decode("ascii")
    assert request.headers["authorization"] == f"Basic {expected_auth}"
    assert handler.form == {
        "grant_type": ["authorization_code"],
        "code": ["auth-code"],
        "redirect_uri": ["https://example.com/callback"],
        "code_verifier": ["verifier"],
    }
    assert token.access_token == "access"
    assert token.refresh_token == "refresh"
    assert token.expires_in == 3600


@pytest.mark.asyncio
async def test_exchange_refresh_token_posts_refresh_grant(settings) -> None:
    body = {key: value for key, value in TOKEN_BODY.items() if key != "refresh_token"}
    handler = RecordingHandler(httpx.Response(200, json=body))
    client = OAuthServerClient(settings, transport=httpx.MockTransport(handler))

    token = await client.exchange_refresh_token("old-refresh")

    assert handler.form == {
        "grant_type": ["refresh_token"],
        "refresh_token": ["old-refresh"],
    }
    assert token.refresh_token is None


@pytest.mark.asyncio
async def test_error_description_is_surfaced(settings) -> None:
    handler = RecordingHandler(
        httpx.Response(400, json={"error": "invalid_grant", "error_description": "Code expired"})
    )
    client = OAuthServerClient(settings, transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError) as excinfo:
        await client.exchange_refresh_token("old-refresh")

    assert excinfo.value.status_code == 400
    assert excinfo.value.description == "Code expired"
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_non_json_error_body_falls_back_to_text(settings) -> None:
    handler = RecordingHandler(httpx.Response(503, text="maintenance"))
    client = OAuthServerClient(settings, transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError) as excinfo:
        await client.exchange_refresh_token("old-refresh")

    assert excinfo.value.status_code == 503
    assert excinfo.value.description == "maintenance"


@pytest.mark.asyncio
async def test_code_exchange_requires_refresh_token(settings) -> None:
    body = {"access_token": "access", "expires_in": 3600}
    client = OAuthServerClient(
        settings, transport=httpx.MockTransport(RecordingHandler(httpx.Response(200, json=body)))
    )

    with pytest.raises(UpstreamError):
        await client.exchange_code("code", redirect_uri="https://x/cb", code_verifier="v")


@pytest.mark.asyncio
async def test_incomplete_payload_is_rejected(settings) -> None:
    client = OAuthServerClient(
        settings,
        transport=httpx.MockTransport(RecordingHandler(httpx.Response(200, json={"foo": 1}))),
    )

    with pytest.raises(UpstreamError):
        await client.exchange_refresh_token("old-refresh")


@pytest.mark.asyncio
async def test_transport_failure_becomes_upstream_error(settings) -> None:
    handler = RecordingHandler(httpx.ConnectTimeout("timed out"))
    client = OAuthServerClient(settings, transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError) as excinfo:
        await client.exchange_refresh_token("old-refresh")

    assert excinfo.value.status_code is None
