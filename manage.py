#!/usr/bin/env python3
"""
ClassHub admin CLI -- provision accounts and maintain the session table.

The HTTP API never creates users; this is the admin workflow that does.

Usage:
  python manage.py create-user --username admin1 --full-name "Admin Satu" --role ADMIN
  python manage.py create-user --username siswa1 --role SISWA --password s3cret
  python manage.py list-users
  python manage.py purge-sessions

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the auth database (default: sqlite file next to the repo).
  SECRET_KEY    Required unless DEBUG=true (session hashes depend on it).
"""

import argparse
import getpass
import sys
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore, create_store_engine
from auth.tokens import MAX_PASSWORD_BYTES, hash_password, password_too_long
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 8


def _build_manager(db_url: str) -> SessionManager:
    settings = get_settings()
    engine = create_store_engine(db_url)
    return SessionManager(
        UserStore(engine),
        SessionStore(engine),
        secret_key=settings.secret_key,
        ttl=timedelta(days=settings.session_ttl_days),
    )


def _read_password(supplied: Optional[str]) -> Optional[str]:
    if supplied is not None:
        return supplied
    first = getpass.getpass("Password: ")
    if first != getpass.getpass("Confirm password: "):
        print("  [!] Passwords do not match.")
        return None
    return first


def cmd_create_user(manager: SessionManager, args: argparse.Namespace) -> int:
    password = _read_password(args.password)
    if password is None:
        return 1
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return 1
    if password_too_long(password):
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes (UTF-8).")
        return 1
    username = args.username.strip()
    if not username:
        print("  [!] Username is required.")
        return 1

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=Role(args.role),
        full_name=args.full_name,
    )
    try:
        user_id = manager.users.create_user(user)
    except IntegrityError:
        print(f"  [!] A user named '{username}' already exists.")
        return 1
    print(f"  Created {user.role.value} '{username}' (id={user_id})")
    return 0


def cmd_list_users(manager: SessionManager, args: argparse.Namespace) -> int:
    users = manager.users.list_users()
    if not users:
        print("  No users.")
        return 0
    for u in users:
        sessions = manager.sessions.count_for_user(u.id)
        print(f"  {u.id:>5}  {u.role.value:<6} {u.username:<24} {u.full_name or '':<30} sessions={sessions}")
    return 0


def cmd_purge_sessions(manager: SessionManager, args: argparse.Namespace) -> int:
    removed = manager.purge_expired()
    print(f"  Purged {removed} expired session(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manage.py", description="ClassHub admin CLI")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Provision a new account")
    create.add_argument("--username", required=True)
    create.add_argument("--full-name", default=None)
    create.add_argument("--role", required=True, choices=[r.value for r in Role])
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.set_defaults(func=cmd_create_user)

    sub.add_parser("list-users", help="List accounts").set_defaults(func=cmd_list_users)
    sub.add_parser("purge-sessions", help="Delete expired sessions").set_defaults(func=cmd_purge_sessions)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    manager = _build_manager(args.database_url or get_settings().database_url)
    try:
        return args.func(manager, args)
    finally:
        manager.users.engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
