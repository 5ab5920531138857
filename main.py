#!/usr/bin/env python3
"""
KnowledgeGate -- operator commands that have no HTTP surface.

The first superadmin cannot be created through the API (POST /auth/admins
requires one), so it is seeded here.

Usage:
  python main.py create-user --email ops@example.org --role superadmin
  python main.py create-user --email analyst@example.org --role admin --password '...'
  python main.py purge-sessions

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the shared database (default: sqlite:///./knowledgegate.db)
  SECRET_KEY    Required unless DEBUG=true; see core/config.py
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.store import SessionRegistry, UserStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password
from core.config import get_settings
from core.database import create_db_engine

logger = logging.getLogger("knowledgegate.cli")

_MIN_PASSWORD = 12


def _read_password(given: Optional[str]) -> Optional[str]:
    """Return the password from the flag, or prompt twice for it."""
    if given:
        return given
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm:  ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def create_user(users: UserStore, email: str, role: str, password: Optional[str]) -> int:
    """Create an account. Returns a process exit code."""
    email = email.strip().lower()
    if "@" not in email:
        print(f"  [!] '{email}' doesn't look like an email address.")
        return 2

    plain = _read_password(password)
    if plain is None:
        return 2
    if len(plain) < _MIN_PASSWORD:
        print(f"  [!] Password must be at least {_MIN_PASSWORD} characters.")
        return 2
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return 2

    try:
        user_id = users.create_user(User(email=email, role=Role(role), password_hash=hash_password(plain)))
    except IntegrityError:
        print(f"  [!] An account for {email} already exists.")
        return 1

    logger.info("Created %s account id=%s via CLI", role, user_id)
    print(f"  Created {role} {email} (id={user_id}).")
    return 0


def purge_sessions(sessions: SessionRegistry) -> int:
    removed = sessions.purge_expired()
    print(f"  Removed {removed} expired session(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="knowledgegate",
        description="Operator commands for the KnowledgeGate session authority.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email ops@example.org --role superadmin
  python main.py purge-sessions
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an admin or superadmin account")
    create.add_argument("--email", required=True, help="Login email (stored lower-case)")
    create.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.admin.value,
        help="Account role (default: admin)",
    )
    create.add_argument(
        "--password",
        default=None,
        help="Password; prompted for when omitted so it stays out of shell history",
    )

    sub.add_parser("purge-sessions", help="Delete expired session rows")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    settings = get_settings()
    engine = create_db_engine(settings.database_url, pool_size=settings.db_pool_size)
    try:
        if args.command == "create-user":
            return create_user(UserStore(engine), args.email, args.role, args.password)
        return purge_sessions(SessionRegistry(engine))
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
