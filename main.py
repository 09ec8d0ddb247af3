"""CLI entry point for the happn channel."""

import argparse
import asyncio
import json
import logging
import sqlite3
import sys
from typing import Any

from src.channels.base import AuthorizationPolicy
from src.channels.happn import CHANNEL_NAME, HappnChannel
from src.channels.session import Session
from src.channels.store import ChannelStore
from src.core.config import Settings
from src.core.db import init_db
from src.core.errors import ChannelError
from src.happn.client import HappnApiError, HappnClient

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="happn channel - authorize, fetch recommendations and matches, like users",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "login-url", parents=[common],
        help="Print the Facebook login dialog URL for happn",
    )
    subparsers.add_parser(
        "login", parents=[common],
        help="Log in to Facebook in a browser and store the access token",
    )
    token_parser = subparsers.add_parser(
        "set-token", parents=[common],
        help="Store a Facebook access token obtained elsewhere",
    )
    token_parser.add_argument("token", help="Facebook user access token")

    subparsers.add_parser("enable", parents=[common], help="Enable the happn channel")
    subparsers.add_parser("disable", parents=[common], help="Disable the happn channel")

    subparsers.add_parser(
        "authorize", parents=[common],
        help="Exchange the stored Facebook token for a happn session",
    )
    subparsers.add_parser(
        "recommendations", parents=[common],
        help="Print current recommendations as JSON",
    )
    subparsers.add_parser(
        "updates", parents=[common],
        help="Print matches newer than the last run as JSON",
    )
    like_parser = subparsers.add_parser("like", parents=[common], help="Like a user")
    like_parser.add_argument("user_id", help="happn user id")
    user_parser = subparsers.add_parser("user", parents=[common], help="Print a user profile")
    user_parser.add_argument("user_id", help="happn user id")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


async def run_channel_command(
    settings: Settings,
    conn: sqlite3.Connection,
    args: argparse.Namespace,
) -> Any:
    """Authorize and run one channel operation. Returns JSON-ready output."""
    store = ChannelStore(conn, settings.channel)
    record = store.ensure(CHANNEL_NAME)
    if not record.is_enabled:
        logger.warning("Channel '%s' is disabled (run: python main.py enable)", CHANNEL_NAME)

    session = Session()
    async with HappnClient(settings.happn, session) as client:
        channel = HappnChannel(
            client, session, store, AuthorizationPolicy(store), config=settings.happn,
        )
        await channel.authorize()

        if args.command == "authorize":
            return {"channel": CHANNEL_NAME, "user_id": session.user_id}
        if args.command == "recommendations":
            return [r.model_dump(mode="json") for r in await channel.get_recommendations()]
        if args.command == "updates":
            return [u.model_dump(mode="json") for u in await channel.get_updates()]
        if args.command == "like":
            match = await channel.like(args.user_id)
            return match.model_dump(mode="json") if match is not None else None
        if args.command == "user":
            return (await channel.get_user(args.user_id)).model_dump(mode="json")

    msg = f"Unknown command: {args.command}"
    raise ValueError(msg)


async def cmd_login(settings: Settings, conn: sqlite3.Connection) -> None:
    """Handle login: browser Facebook login, then store the token."""
    from src.browser.session import BrowserSession
    from src.oauth.facebook import login

    async with BrowserSession(settings.browser) as browser:
        token = await login(
            browser.page, settings.oauth, timeout_ms=settings.browser.login_timeout_ms,
        )
    _store_facebook_token(settings, conn, token)
    print(f"Facebook access token stored for '{CHANNEL_NAME}'.")


def _store_facebook_token(settings: Settings, conn: sqlite3.Connection, token: str) -> None:
    # A new Facebook token invalidates any stored happn session.
    ChannelStore(conn, settings.channel).save(
        [CHANNEL_NAME],
        facebook_access_token=token,
        user_id=None,
        access_token=None,
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "login-url":
        from src.oauth.facebook import build_authorize_url

        print(build_authorize_url(settings.oauth))
        return

    conn = init_db(settings.database.path)
    try:
        if args.command == "login":
            asyncio.run(cmd_login(settings, conn))
        elif args.command == "set-token":
            _store_facebook_token(settings, conn, args.token)
            print(f"Facebook access token stored for '{CHANNEL_NAME}'.")
        elif args.command in ("enable", "disable"):
            ChannelStore(conn, settings.channel).set_enabled(
                CHANNEL_NAME, args.command == "enable",
            )
            print(f"Channel '{CHANNEL_NAME}' {args.command}d.")
        else:
            output = asyncio.run(run_channel_command(settings, conn, args))
            print(json.dumps(output, indent=2))
    except (ChannelError, HappnApiError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
