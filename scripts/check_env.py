"""Pre-flight checks for a QuickBooks connector deployment.

``check`` loads settings from an ``.env`` file and confirms that:

1. every setting parses (``QUICKBOOKS_ENVIRONMENT``, timeouts, URLs);
2. the OAuth client id and secret are present;
3. the redirect URI suits the environment, since Intuit only accepts an
   ``https`` callback on a public host for production apps;
4. ``TOKEN_STORE_PATH``, when set, opens as a token store and holds no
   realms connected under the other environment.

``realms`` lists the realms persisted in the token store with the expiry of
their refresh tokens, so operators can see who will need to reconnect.

Example usages::

    python -m scripts.check_env check --env-file /opt/qbo-connector/.env
    python -m scripts.check_env realms --env-file /opt/qbo-connector/.env
"""

from __future__ import annotations

import argparse
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from app.clients.sqlite_store import SQLiteTokenStore
from app.core.config import AppSettings, ConfigurationError, QuickBooksSettings, _load_env_file
from app.core.logging import mask_secret
from app.models.oauth import utcnow

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 3
EXIT_RUNTIME_ERROR = 5

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1", "[::1]"}


def _load_settings(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _quickbooks_problems(quickbooks: QuickBooksSettings) -> list[str]:
    """Return human readable problems with the OAuth client registration."""
    problems: list[str] = []
    try:
        quickbooks.require_credentials()
    except ConfigurationError as exc:
        problems.append(str(exc))

    uri = quickbooks.redirect_uri
    if uri is not None and quickbooks.environment == "production":
        if uri.scheme != "https":
            problems.append(f"Production redirect URI must use https: {uri}")
        if uri.host in _LOCAL_HOSTS:
            problems.append(f"Production redirect URI points at a local host: {uri}")
    return problems


def _check(settings: AppSettings) -> int:
    quickbooks = settings.quickbooks
    problems = _quickbooks_problems(quickbooks)
    if problems:
        print("Settings validation failed:", file=sys.stderr)
        for problem in problems:
            print(f"  - {problem}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if quickbooks.redirect_uri is None:
        print("QUICKBOOKS_REDIRECT_URI not set; the callback route of the serving host is used.")

    path = settings.storage.token_store_path
    if not path:
        print("Token store: in-memory (connections are lost on restart).")
        print(f"Configuration OK ({quickbooks.environment}).")
        return EXIT_OK

    store = SQLiteTokenStore(path)
    mismatched = [
        (tenant_id, record.environment)
        for tenant_id, record in store.entries()
        if record.environment != quickbooks.environment
    ]
    if mismatched:
        print(
            f"Token store {path} holds realms issued outside {quickbooks.environment}:",
            file=sys.stderr,
        )
        for tenant_id, environment in mismatched:
            print(f"  - {tenant_id} ({environment})", file=sys.stderr)
        return EXIT_STORE_ERROR

    print(f"Token store: {path}")
    print(f"Configuration OK ({quickbooks.environment}).")
    return EXIT_OK


def _list_realms(settings: AppSettings, now: datetime) -> int:
    path = settings.storage.token_store_path
    if not path:
        print(
            "TOKEN_STORE_PATH is not set; tokens only live in the running process.",
            file=sys.stderr,
        )
        return EXIT_STORE_ERROR

    entries = list(SQLiteTokenStore(path).entries())
    if not entries:
        print("No connected realms.")
        return EXIT_OK

    for tenant_id, record in entries:
        if record.refresh_token_expired(now):
            remaining = "expired, reconnect required"
        else:
            remaining = f"{(record.refresh_token_expires_at - now).days}d left"
        print(
            f"{tenant_id}\t{record.environment}\trefresh {mask_secret(record.refresh_token)}"
            f"\texpires {record.refresh_token_expires_at.isoformat()} ({remaining})"
        )
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate QuickBooks connector settings and inspect stored realms."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("check", "Validate settings and the token store."),
        ("realms", "List realms persisted in the token store."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

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

    try:
        if args.command == "realms":
            return _list_realms(settings, utcnow())
        return _check(settings)
    except (OSError, sqlite3.Error) as exc:
        print(
            f"Token store {settings.storage.token_store_path} is unusable: {exc}",
            file=sys.stderr,
        )
        return EXIT_STORE_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
