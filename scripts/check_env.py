"""Verify the auto-vault configuration before starting the API or the worker.

The service refuses to start without its Bungie credentials, since running
without a working refresh path lets stored tokens expire for good. This tool
surfaces that earlier, from a deploy hook or a cron job:

1. ``check`` loads ``AppSettings`` from the given ``.env`` file and reports
   missing or malformed entries.
2. ``probe`` additionally opens the configured record store and counts the
   registered users, proving the storage backend and the token encryption
   secret are usable.
3. ``record`` / ``verify`` keep a checksum of the ``.env`` file so unexpected
   edits are detected.

Example usages::

    python -m scripts.check_env check --env-file /opt/autovault/.env
    python -m scripts.check_env probe --env-file /opt/autovault/.env
    python -m scripts.check_env verify --env-file /opt/autovault/.env \
        --hash-file /opt/autovault/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file
from app.core.errors import CredentialStoreError

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_STORAGE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _describe(settings: AppSettings) -> str:
    secrets = settings.security.token_encryption_secrets
    return (
        f"environment={settings.environment} "
        f"storage={settings.storage.backend} "
        f"interval={settings.scheduler.interval_seconds}s "
        f"concurrency={settings.scheduler.max_concurrency} "
        f"encryption_keys={len(secrets) or 'client-secret'}"
    )


def _probe_storage(settings: AppSettings) -> int:
    """Open the record store and enumerate users without touching any record."""
    from app.clients import DynamoDBClient, SQLiteStore
    from app.services import CredentialStore, TokenCipherService

    if settings.storage.backend == "dynamodb":
        backend = DynamoDBClient(settings.aws)
    else:
        backend = SQLiteStore(settings.storage.sqlite_db_path)
    cipher = TokenCipherService(
        secrets=settings.security.token_encryption_secrets or (settings.bungie.client_secret,)
    )
    try:
        users = CredentialStore(backend, cipher).list()
    except CredentialStoreError as exc:
        print(f"Record store unavailable: {exc}", file=sys.stderr)
        return EXIT_STORAGE_ERROR
    print(f"Record store OK ({len(users)} registered users).")
    return EXIT_OK


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


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate auto-vault settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    def add_hash_file(subparser: argparse.ArgumentParser, help_text: str) -> None:
        subparser.add_argument("--hash-file", required=True, type=Path, help=help_text)

    check_parser = subparsers.add_parser(
        "check", help="Validate settings without touching any other resource."
    )
    add_env_file(check_parser)

    probe_parser = subparsers.add_parser(
        "probe", help="Validate settings and open the configured record store."
    )
    add_env_file(probe_parser)

    record_parser = subparsers.add_parser(
        "record", help="Validate settings and store the checksum baseline."
    )
    add_env_file(record_parser)
    add_hash_file(record_parser, "Location to write the checksum baseline.")

    verify_parser = subparsers.add_parser(
        "verify", help="Validate settings and compare the checksum with the baseline."
    )
    add_env_file(verify_parser)
    add_hash_file(verify_parser, "Location of the previously recorded checksum baseline.")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    print(f"Settings OK ({_describe(settings)}).")

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "probe": lambda: _probe_storage(settings),
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
