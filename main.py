#!/usr/bin/env python3
"""
ProfileDash -- operator command line.

Usage:
  python main.py create-user --name "Ada Admin" --email ada@example.com --role superadmin
  python main.py status
  python main.py purge-sessions

Uses the same Database handle and stores as the API, against DATABASE_URL
from the environment or .env.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import ROLES, ROLE_USER
from auth.sessions import SessionManager
from auth.store import UserStore
from cards.blob import build_blob_store
from core.config import Settings, get_settings
from core.database import Database
from core.errors import ProfileDashError


def _prompt_password() -> Optional[str]:
    """Ask for a password twice without echoing it. Returns None on mismatch."""
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def cmd_create_user(args: argparse.Namespace, db: Database) -> int:
    password = args.password if args.password is not None else _prompt_password()
    if password is None:
        return 1
    try:
        user = UserStore(db).create_user(args.name, args.email, password, args.role)
    except ProfileDashError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  + Created {user.role} {user.email} (id={user.id})")
    return 0


def cmd_status(args: argparse.Namespace, db: Database, settings: Settings) -> int:
    ok = db.check_connection()
    print(f"  Database:      {'connected' if ok else 'FAILED'}")
    if not ok:
        return 1
    store = UserStore(db)
    users = store.list_users()
    print(f"  Users:         {len(users)}")
    if not users:
        print("  Setup:         required (no accounts yet)")
    blob = build_blob_store(settings)
    backend = "remote" if settings.blob_read_write_token else f"local ({settings.upload_dir})"
    print(f"  Blob storage:  {backend}{'' if blob.is_configured() else ' -- not configured'}")
    return 0


def cmd_purge_sessions(args: argparse.Namespace, db: Database, settings: Settings) -> int:
    removed = SessionManager(db, duration_seconds=settings.session_duration_seconds).purge_expired()
    print(f"  Removed {removed} expired session(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="profiledash",
        description="Operator commands for ProfileDash.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --name "Ada Admin" --email ada@example.com --role superadmin
  python main.py create-user --name Bob --email bob@example.com --password s3cret
  python main.py status
  python main.py purge-sessions
        """,
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create-user", help="Create an account")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument("--email", required=True, help="Login email (stored lower-cased)")
    create.add_argument(
        "--role",
        choices=sorted(ROLES),
        default=ROLE_USER,
        help="Account role (default: user)",
    )
    create.add_argument(
        "--password",
        default=None,
        help="Password; prompted for without echo when omitted",
    )

    sub.add_parser("status", help="Check database connectivity and setup state")
    sub.add_parser("purge-sessions", help="Delete expired login sessions")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    db = Database(settings.database_url)
    try:
        if args.command == "create-user":
            return cmd_create_user(args, db)
        if args.command == "status":
            return cmd_status(args, db, settings)
        return cmd_purge_sessions(args, db, settings)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
