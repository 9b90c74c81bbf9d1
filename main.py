#!/usr/bin/env python3
"""
Water Tools accounts -- operator command line.

Account administration that has no HTTP endpoint: creating admins,
(de)activating accounts, changing roles and ending every session of a user.

Usage:
  python main.py create-user admin@example.com 's3cret!' --name "Ada Admin" --role admin
  python main.py deactivate jane@example.com
  python main.py activate jane@example.com
  python main.py set-role jane@example.com admin
  python main.py revoke-sessions jane@example.com

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the account database (default: ./wateraccounts.db)
  DEBUG         Set to true to allow running without token secrets configured.
"""

import argparse
import sys
from typing import Optional

from auth.exceptions import DuplicateError, ValidationError
from auth.models import ROLES, split_name
from auth.passwords import PasswordHasher
from auth.service import check_email
from auth.store import UserStore
from core.config import get_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage Water Tools accounts.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create an account (e.g. the first admin).")
    create.add_argument("email")
    create.add_argument("password")
    create.add_argument("--name", default="", help="Full name")
    create.add_argument("--username", default=None, help="Defaults to the email local part")
    create.add_argument("--role", default="user", choices=ROLES)

    for name, help_text in (
        ("deactivate", "Block logins for an account."),
        ("activate", "Re-enable a deactivated account."),
        ("revoke-sessions", "Invalidate every refresh token of an account."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("email")

    role = sub.add_parser("set-role", help="Change an account's role.")
    role.add_argument("email")
    role.add_argument("role", choices=ROLES)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    store = UserStore(settings.database_url, hasher, max_refresh_tokens=settings.max_refresh_tokens)
    try:
        return _run(args, store, settings.password_min_length)
    finally:
        store.close()


def _run(args: argparse.Namespace, store: UserStore, password_min_length: int) -> int:
    if args.command == "create-user":
        if len(args.password) < password_min_length:
            print(f"Password must be at least {password_min_length} characters.", file=sys.stderr)
            return 1
        try:
            check_email(args.email)
        except ValidationError:
            print(f"'{args.email}' is not a valid email address.", file=sys.stderr)
            return 1
        first_name, last_name = split_name(args.name)
        try:
            user = store.create_user(
                email=args.email,
                username=args.username or args.email.split("@")[0],
                password=args.password,
                first_name=first_name,
                last_name=last_name,
                role=args.role,
            )
        except DuplicateError as exc:
            print(f"An account with that {exc.field} already exists.", file=sys.stderr)
            return 1
        print(f"Created {user.role} '{user.email}' (id {user.id}).")
        return 0

    user = store.get_by_email(args.email)
    if user is None:
        print(f"No account with email '{args.email}'.", file=sys.stderr)
        return 1

    if args.command in ("deactivate", "activate"):
        active = args.command == "activate"
        store.update_user(user.id, is_active=active)
        if not active:
            store.remove_all_refresh_tokens(user.id)
        print(f"{'Activated' if active else 'Deactivated'} '{user.email}'.")
    elif args.command == "set-role":
        store.update_user(user.id, role=args.role)
        print(f"'{user.email}' is now {args.role}.")
    elif args.command == "revoke-sessions":
        count = store.remove_all_refresh_tokens(user.id)
        print(f"Revoked {count} session(s) for '{user.email}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
