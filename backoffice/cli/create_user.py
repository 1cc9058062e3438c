# backoffice/cli/create_user.py
from __future__ import annotations
import argparse
import getpass
import sys

from backoffice.services.auth_service import hash_password
from backoffice.services.errors import ConflictError
from backoffice.services.roles import Role, parse_role
from backoffice.storage import users_store
from backoffice.storage.db import get_conn


def _password(value: str | None) -> str:
    pwd = value or getpass.getpass("Password: ")
    if len(pwd) < 6:
        sys.exit("[ERR] Password must be at least 6 characters.")
    return pwd


def cmd_create(args: argparse.Namespace) -> None:
    role = parse_role(args.role)
    if role is None:
        sys.exit(f"[ERR] Unknown role '{args.role}'. Expected one of: {', '.join(r.value for r in Role)}")
    conn = get_conn()
    try:
        result = users_store.create_user(
            conn, args.email, hash_password(_password(args.password)), args.full_name, role.value, created_by=None,
        )
    except ConflictError as e:
        sys.exit(f"[ERR] {e}")
    finally:
        conn.close()
    verb = "Created" if result["created"] else "Attached role to"
    print(f"[OK] {verb} user {args.email} (id={result['id']}, role={role.value}).")


def cmd_reset_password(args: argparse.Namespace) -> None:
    conn = get_conn()
    try:
        row = users_store.get_login_row(conn, args.email)
        if not row:
            sys.exit(f"[ERR] No user with email {args.email}")
        users_store.update_user(conn, row["id"], password_hash=hash_password(_password(args.password)), is_active=True)
    finally:
        conn.close()
    print(f"[OK] Password reset for {args.email} (argon2).")


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Bootstrap back-office users")
    sub = ap.add_subparsers(dest="command", required=True)

    c = sub.add_parser("create", help="Create a user (or give a role to a user without one)")
    c.add_argument("--email", required=True)
    c.add_argument("--password", help="Plaintext password (prompted when omitted)")
    c.add_argument("--full-name", default=None)
    c.add_argument("--role", default=Role.ADMIN.value, help="admin | employee (default: admin)")
    c.set_defaults(func=cmd_create)

    r = sub.add_parser("reset-password", help="Set a new password and reactivate the account")
    r.add_argument("--email", required=True)
    r.add_argument("--password", help="Plaintext password (prompted when omitted)")
    r.set_defaults(func=cmd_reset_password)

    args = ap.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
