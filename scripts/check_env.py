"""Utility for verifying configuration and managing the token encryption key.

The tool performs three jobs:

1. It attempts to instantiate ``AppSettings`` (and the token cipher) using the
   provided ``.env`` file, surfacing missing or malformed configuration
   entries, including a bad ``TOKEN_ENCRYPTION_KEY``, before the service
   starts failing.
2. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.
3. It generates fresh encryption keys and re-encrypts stored credentials under
   a new key.

Example usages::

    # Validate required settings are present and record the expected checksum.
    python -m scripts.check_env record --env-file /opt/tokenkeeper/.env \
        --hash-file /opt/tokenkeeper/.env.sha256

    # Run later (e.g. from cron/systemd) to alert on drift.
    python -m scripts.check_env verify --env-file /opt/tokenkeeper/.env \
        --hash-file /opt/tokenkeeper/.env.sha256

    # Print a new hex encoded key for TOKEN_ENCRYPTION_KEY.
    python -m scripts.check_env generate-key

    # Re-encrypt two users' credentials with a new key.
    python -m scripts.check_env rotate-key --env-file .env \
        --new-key <hex> --user-id alice --user-id bob
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from tokenkeeper.core.config import AppSettings, _load_env_file
from tokenkeeper.core.errors import EncryptionConfigError
from tokenkeeper.services import (
    EncryptingCredentialStore,
    TokenCipherService,
    TokenRefreshService,
)

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure required settings and the encryption key load from the env file."""
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    TokenCipherService(
        key=settings.security.token_encryption_key,
        enforce=settings.security.enforce_encryption,
    )
    return settings


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    """Persist the current checksum to ``hash_file``."""
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Investigate recent changes before restarting services.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _generate_key() -> int:
    print(TokenCipherService.key_to_string(TokenCipherService.generate_key()))
    return EXIT_OK


def _rotate_key(settings: AppSettings, new_key: str, user_ids: list[str]) -> int:
    """Re-encrypt each user's credential under ``new_key``."""
    # Imported lazily: building stores touches the filesystem or AWS.
    from tokenkeeper.dependencies import get_base_credential_store, get_oauth_client

    try:
        target_cipher = TokenCipherService(key=new_key, enforce=True)
    except EncryptionConfigError as exc:
        print(f"Invalid new key: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    base_store = get_base_credential_store()
    current_cipher = TokenCipherService(
        key=settings.security.token_encryption_key,
        enforce=settings.security.enforce_encryption,
    )
    service = TokenRefreshService(
        store=EncryptingCredentialStore(base_store, current_cipher),
        oauth_client=get_oauth_client(),
    )
    target = EncryptingCredentialStore(base_store, target_cipher)

    async def rotate_all() -> None:
        for user_id in user_ids:
            rotated = await service.rotate_encryption(user_id=user_id, target=target)
            print(f"{user_id}: {'rotated' if rotated else 'no credential stored'}")

    asyncio.run(rotate_all())
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate required settings, detect .env drift, and manage keys."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    record_parser = subparsers.add_parser(
        "record",
        help="Validate settings and store the checksum baseline.",
    )
    add_common_arguments(record_parser)
    record_parser.add_argument(
        "--hash-file",
        required=True,
        type=Path,
        help="Location to write the checksum baseline.",
    )

    verify_parser = subparsers.add_parser(
        "verify",
        help="Validate settings and compare the checksum with the baseline.",
    )
    add_common_arguments(verify_parser)
    verify_parser.add_argument(
        "--hash-file",
        required=True,
        type=Path,
        help="Location of the previously recorded checksum baseline.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_common_arguments(check_parser)

    subparsers.add_parser(
        "generate-key",
        help="Print a new hex encoded 256-bit token encryption key.",
    )

    rotate_parser = subparsers.add_parser(
        "rotate-key",
        help="Re-encrypt stored credentials with a new key.",
    )
    add_common_arguments(rotate_parser)
    rotate_parser.add_argument("--new-key", required=True, help="New hex encoded key.")
    rotate_parser.add_argument(
        "--user-id",
        dest="user_ids",
        action="append",
        required=True,
        help="User whose credential should be rotated; repeatable.",
    )

    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    command: str = args.command
    if command == "generate-key":
        return _generate_key()

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _validate_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except EncryptionConfigError as exc:
        print(f"Token encryption is misconfigured: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
        "rotate-key": lambda: _rotate_key(settings, args.new_key, args.user_ids),
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
