#!/usr/bin/env python3
"""AIMate CLI."""
from __future__ import annotations

import argparse
import sys

from aimate.config import ConfigError, load_settings
from aimate.email import CredentialMissing, SyncFailed, SyncInProgress, reconcile_mailbox
from aimate.mailer import GmailNotConfigured


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aimate",
        description="Personal productivity assistant: tasks, expenses, meetings and email replies.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the REST API with uvicorn.",
    )
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=5000, help="Port to listen on.")
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change.",
    )

    subparsers.add_parser(
        "check-config",
        help="Show which external services have credentials configured.",
    )

    sync_parser = subparsers.add_parser(
        "sync-emails",
        help="Reconcile a user's stored emails with their Gmail inbox.",
    )
    sync_parser.add_argument("user_id", help="Id of the user to sync.")
    sync_parser.add_argument(
        "--count",
        type=int,
        help="How many of the newest messages to fetch (default from AIMATE_SYNC_COUNT).",
    )

    return parser


def _cmd_serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port, reload=reload)
    return 0


def _cmd_check_config() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Configuration check failed: {exc}", file=sys.stderr)
        return 1

    missing = set(settings.missing_credentials())
    print(f"Environment: {settings.environment}")
    for name in ("anthropic", "transcription", "gmail"):
        status = "not configured" if name in missing else "configured"
        print(f"  {name:<14} {status}")
    print(f"Sync count: {settings.sync_count} | HTTP timeout: {settings.http_timeout:g}s")
    return 0


def _cmd_sync_emails(user_id: str, count: int | None) -> int:
    from api.dependencies import build_services

    try:
        services = build_services()
        fetcher = services.require_fetcher()
    except (ConfigError, GmailNotConfigured) as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1

    try:
        result = reconcile_mailbox(
            user_id,
            fetcher,
            count=count or services.settings.sync_count,
        )
    except (CredentialMissing, SyncFailed, SyncInProgress) as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1

    if result.account is None:
        print("No Gmail account could be resolved; nothing was stored.")
        return 0

    print(f"Account: {result.account}")
    print(f"Fetched: {result.fetched} | New: {result.count}")
    print(
        f"Removed: {result.removed_stale} outside the sync window, "
        f"{result.removed_other_accounts} from other accounts"
    )
    for record in result.created:
        print(f" - {record.subject or '(no subject)'} from {record.from_address}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        return _cmd_serve(host=args.host, port=args.port, reload=args.reload)
    if args.command == "check-config":
        return _cmd_check_config()
    if args.command == "sync-emails":
        return _cmd_sync_emails(user_id=args.user_id, count=args.count)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
