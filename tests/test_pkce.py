"""Tests for PKCE helpers and auth URL building."""

import re
from urllib.parse import parse_qs, urlparse

import pytest

from tokenkeeper.core.errors import InvalidParameterError
from tokenkeeper.utils.pkce import (
    build_authorize_url,
    challenge_from,
    new_state,
    new_verifier,
    verify,
)


def _flip_bit(value: str, index: int, bit: int = 0) -> str:
    return value[:index] + chr(ord(value[index]) ^ (1 << bit)) + value[index + 1 :]


def test_new_state_is_long_and_unique():
    first, second = new_state(), new_state()
    assert len(first) == 64
    assert re.match(r"^[0-9a-f]+$", first)
    assert first != second


@pytest.mark.parametrize("length", [43, 64, 100, 128])
def test_new_verifier_length_and_charset(length):
    verifier = new_verifier(length)
    assert len(verifier) == length
    assert re.match(r"^[A-Za-z0-9_-]+$", verifier)


@pytest.mark.parametrize("length", [0, 42, 129])
def test_new_verifier_rejects_out_of_range_length(length):
    with pytest.raises(InvalidParameterError):
        new_verifier(length)


def test_challenge_matches_rfc7636_example():
    # RFC 7636 appendix B.
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert challenge_from(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


@pytest.mark.parametrize("length", [43, 77, 128])
def test_challenge_is_deterministic_and_verifies(length):
    verifier = new_verifier(length)
    challenge = challenge_from(verifier)

    assert challenge == challenge_from(verifier)
    assert len(challenge) == 43
    assert verify(verifier, challenge) is True


def test_verify_rejects_single_bit_mutations():
    verifier = new_verifier(64)
    challenge = challenge_from(verifier)

    for index in (0, 31, 63):
        assert verify(_flip_bit(verifier, index), challenge) is False
    for index in (0, 21, 42):
        assert verify(verifier, _flip_bit(challenge, index)) is False


@pytest.mark.parametrize("verifier", ["", "short", "a" * 129, "a" * 42 + " "])
def test_challenge_rejects_malformed_verifier(verifier):
    with pytest.raises(InvalidParameterError):
        challenge_from(verifier)
    assert verify(verifier, "anything") is False


def test_build_authorize_url_includes_required_params():
    url = build_authorize_url(
        base_url="https://as.example/oauth-v1/auth",
        client_id="client1",
        redirect_uri="https://client.example/cb",
        scope="companyinformation invoice",
        state="mystate",
        code_challenge="challenge123",
    )
    parsed = urlparse(url)
    params = parse_qs(parsed.query)

    assert url.startswith("https://as.example/oauth-v1/auth?")
    assert params["response_type"] == ["code"]
    assert params["client_id"] == ["client1"]
    assert params["redirect_uri"] == ["https://client.example/cb"]
    assert params["scope"] == ["companyinformation invoice"]
    assert params["state"] == ["mystate"]
    assert params["code_challenge"] == ["challenge123"]
    assert params["code_challenge_method"] == ["S256"]
