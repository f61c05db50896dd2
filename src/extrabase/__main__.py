"""CLI entry point for extrabase.

Usage:
    python -m extrabase get <path>
    python -m extrabase put <path> <json>
    python -m extrabase post <path> <json>
    python -m extrabase update <path> <json>
    python -m extrabase delete <path>
    python -m extrabase token

Connection options (--project, --credentials, --token, --host) default to
the EXTRABASE_* environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx

from extrabase.config import Settings, get_settings
from extrabase.credentials import resolve
from extrabase.database import Database
from extrabase.exceptions import FirebaseError
from extrabase.logging import logger, setup_logging


def parse_body(raw: str) -> Any:
    """Parse a JSON command-line argument.

    Raises:
        ValueError: If raw is not valid JSON.
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Body is not valid JSON: {e}") from e


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Overlay command-line options on environment settings."""
    overrides = {
        "project_id": args.project,
        "credentials_path": args.credentials,
        "access_token": args.token,
        "host": args.host,
        "log_level": args.log_level,
    }
    if args.connection_close:
        overrides["connection_close"] = True
    updates = {k: v for k, v in overrides.items() if v is not None}
    # Validate again so overrides are normalized like environment values
    return Settings.model_validate({**get_settings().model_dump(), **updates})


def _print_response(response: httpx.Response) -> None:
    print(f"HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# --- Command handlers ---


async def cmd_get(db: Database, args: argparse.Namespace) -> httpx.Response:
    return await db.get(args.path)


async def cmd_put(db: Database, args: argparse.Namespace) -> httpx.Response:
    return await db.put(args.path, args.body)


async def cmd_post(db: Database, args: argparse.Namespace) -> httpx.Response:
    return await db.post(args.path, args.body)


async def cmd_update(db: Database, args: argparse.Namespace) -> httpx.Response:
    return await db.update(args.path, args.body)


async def cmd_delete(db: Database, args: argparse.Namespace) -> httpx.Response:
    return await db.delete(args.path)


async def run_database_command(args: argparse.Namespace, settings: Settings) -> int:
    """Run one database operation and print the response."""
    try:
        db = Database.from_settings(settings)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except FirebaseError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1

    try:
        response = await args.func(db, args)
    except FirebaseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await db.close()

    _print_response(response)
    return 0 if response.is_success else 1


async def run_token_command(settings: Settings) -> int:
    """Resolve a token from the configured service account and print it."""
    if not settings.credentials_path:
        print(
            "Error: no credentials file. Set EXTRABASE_CREDENTIALS_PATH "
            "or pass --credentials.",
            file=sys.stderr,
        )
        return 2
    try:
        token = await resolve(settings.credentials_path)
    except FirebaseError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1
    print(token.access_token)
    expires_in = token.expires_in_seconds()
    if expires_in is not None:
        print(f"Token expires in: {expires_in} seconds", file=sys.stderr)
    return 0


# --- CLI setup ---


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extrabase",
        description="Read and write a Firebase Realtime Database over REST",
    )
    parser.add_argument("--project", default=None, help="Database name")
    parser.add_argument(
        "--credentials", default=None, help="Path to service account JSON key"
    )
    parser.add_argument(
        "--token", default=None, help="Access token (skips the service account)"
    )
    parser.add_argument("--host", default=None, help="Database host suffix")
    parser.add_argument(
        "--connection-close",
        action="store_true",
        help="Disable HTTP keep-alive",
    )
    parser.add_argument(
        "--log-level", type=str.upper, default=None, help="Log level (default: INFO)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # get
    get_parser = subparsers.add_parser("get", help="Read the value at a path")
    get_parser.add_argument("path", help="Database path, e.g. users/tom")
    get_parser.set_defaults(func=cmd_get)

    # put / post / update take a JSON body
    for name, func, help_text in (
        ("put", cmd_put, "Replace the value at a path"),
        ("post", cmd_post, "Add a child with a generated key"),
        ("update", cmd_update, "Merge fields into the value at a path"),
    ):
        body_parser = subparsers.add_parser(name, help=help_text)
        body_parser.add_argument("path", help="Database path")
        body_parser.add_argument("body", help="JSON value")
        body_parser.set_defaults(func=func)

    # delete
    delete_parser = subparsers.add_parser("delete", help="Remove the value at a path")
    delete_parser.add_argument("path", help="Database path")
    delete_parser.set_defaults(func=cmd_delete)

    # token
    token_parser = subparsers.add_parser(
        "token", help="Print an access token for the service account"
    )
    token_parser.set_defaults(func=None)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if hasattr(args, "body"):
        try:
            args.body = parse_body(args.body)
        except ValueError as e:
            parser.error(str(e))

    settings = _settings_from_args(args)
    setup_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.debug("Running {} against project {!r}", args.command, settings.project_id)

    if args.command == "token":
        return asyncio.run(run_token_command(settings))
    return asyncio.run(run_database_command(args, settings))


if __name__ == "__main__":
    sys.exit(main())
