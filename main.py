#!/usr/bin/env python3
"""
usergate -- operator CLI for the identity store.

Usage:
  python main.py create-user --email a@x.com --display-name "Ada"
  python main.py create-user --email a@x.com --display-name "Ada" --password s3cret
  python main.py issue-token --email a@x.com

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the identity store (default: sqlite:///usergate.db).
  SECRET_KEY    Signing key for issue-token. Must match the running API's key,
                otherwise the issued token will not verify.
"""

import argparse
import logging
from getpass import getpass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, TokenCodec, hash_password
from core.config import get_settings

logger = logging.getLogger("usergate.cli")


def _create_user(store: UserStore, args: argparse.Namespace) -> int:
    password = args.password
    if password is None:
        password = getpass("Password: ")
        if getpass("Repeat password: ") != password:
            print("  [!] Passwords do not match.")
            return 1
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return 1

    try:
        user_id = store.create_user(
            User(email=args.email, display_name=args.display_name),
            hash_password(password),
        )
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    logger.info("Created user %s", user_id)
    print(user_id)
    return 0


def _issue_token(store: UserStore, args: argparse.Namespace) -> int:
    user = store.get_by_email(args.email)
    if user is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1
    print(TokenCodec.from_settings(get_settings()).encode(user.id))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="usergate",
        description="Manage identities for the usergate API.",
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create-user", help="Register a user with a password")
    create.add_argument("--email", required=True)
    create.add_argument("--display-name", required=True)
    create.add_argument(
        "--password",
        default=None,
        help="Password to set. Prompted for (twice) when omitted.",
    )
    create.set_defaults(handler=_create_user)

    issue = commands.add_parser("issue-token", help="Print a bearer token for an existing user")
    issue.add_argument("--email", required=True)
    issue.set_defaults(handler=_issue_token)

    args = parser.parse_args(argv)

    store = UserStore(db_url=args.db_url or get_settings().database_url)
    try:
        return args.handler(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    raise SystemExit(main())
