"""Tests for the environment drift detection and key management script."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from scripts import check_env
from tokenkeeper.clients import SQLiteCredentialStore
from tokenkeeper.models.oauth import Credential
from tokenkeeper.services import EncryptingCredentialStore, TokenCipherService

MANAGED_ENV_KEYS = [
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_REDIRECT_URI",
    "OAUTH_AUTH_BASE_URL",
    "OAUTH_SCOPES",
    "TOKEN_ENCRYPTION_KEY",
    "TOKEN_ENFORCE_ENCRYPTION",
]

VALID_ENV = {
    "OAUTH_CLIENT_ID": "abc",
    "OAUTH_CLIENT_SECRET": "secret",
    "OAUTH_REDIRECT_URI": "https://example.com/oauth/callback",
    "OAUTH_AUTH_BASE_URL": "https://auth.example.com/oauth-v1",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_managed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in MANAGED_ENV_KEYS:
        # setenv first so teardown restores (or removes) whatever the script loads.
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK
    assert hash_file.read_text(encoding="utf-8").strip()

    _clear_managed_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(env_file, **{**VALID_ENV, "OAUTH_CLIENT_SECRET": "different"})

    _clear_managed_env(monkeypatch)
    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_validation_failure_for_missing_required_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_managed_env(monkeypatch)
    env = dict(VALID_ENV)
    env.pop("OAUTH_CLIENT_SECRET")
    _write_env(env_file, **env)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


@pytest.mark.parametrize(
    "extra",
    [
        {"TOKEN_ENCRYPTION_KEY": "abcd"},
        {"TOKEN_ENFORCE_ENCRYPTION": "true"},
    ],
)
def test_validation_failure_for_bad_encryption_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, extra: dict[str, str]
) -> None:
    env_file = tmp_path / ".env"

    _clear_managed_env(monkeypatch)
    _write_env(env_file, **VALID_ENV, **extra)

    exit_code = check_env.main(["check", "--env-file", str(env_file)])
    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_generate_key_prints_hex_key(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = check_env.main(["generate-key"])

    assert exit_code == check_env.EXIT_OK
    key = capsys.readouterr().out.strip()
    assert re.match(r"^[0-9a-f]{64}$", key)
    TokenCipherService(key=key)


def test_rotate_key_reencrypts_stored_credentials(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    from tokenkeeper import dependencies

    old_key = TokenCipherService.key_to_string(TokenCipherService.generate_key())
    new_key = TokenCipherService.key_to_string(TokenCipherService.generate_key())
    base = SQLiteCredentialStore(str(tmp_path / "credentials.db"))
    EncryptingCredentialStore(base, TokenCipherService(key=old_key)).save(
        "alice",
        Credential(access_token="access", refresh_token="refresh", expires_in=3600),
    )
    monkeypatch.setattr(dependencies, "get_base_credential_store", lambda: base)

    env_file = tmp_path / ".env"
    _clear_managed_env(monkeypatch)
    _write_env(env_file, **VALID_ENV, TOKEN_ENCRYPTION_KEY=old_key)

    exit_code = check_env.main(
        [
            "rotate-key",
            "--env-file",
            str(env_file),
            "--new-key",
            new_key,
            "--user-id",
            "alice",
            "--user-id",
            "bob",
        ]
    )

    assert exit_code == check_env.EXIT_OK
    rotated = EncryptingCredentialStore(base, TokenCipherService(key=new_key)).get("alice")
    assert rotated.access_token == "access"
    assert rotated.refresh_token == "refresh"
