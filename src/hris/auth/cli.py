#!/usr/bin/env python3
"""
Administrative command line for the HRIS auth store.

Usage:
    hris-auth init [--admin-email EMAIL]
    hris-auth create-user EMAIL NAME [--role ROLE]
    hris-auth assign-role EMAIL ROLE
    hris-auth cleanup-sessions
"""

import argparse
import getpass
import sys
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from .config import configure_logging, get_settings
from .credential_service import CredentialService
from .exceptions import AuthError
from .seed import seed_admin, seed_defaults


def _read_password(prompt: str = "Password: ") -> str:
    password = getpass.getpass(prompt)
    confirm = getpass.getpass("Confirm password: ")
    if password != confirm:
        raise SystemExit("Passwords do not match")
    return password


def cmd_init(service: CredentialService, args: argparse.Namespace) -> int:
    seed_defaults(service.db)
    if args.admin_email:
        seed_admin(service.db, service, args.admin_email, _read_password("Admin password: "))
    print(f"Initialized {service.db.db_path}")
    return 0


def cmd_create_user(service: CredentialService, args: argparse.Namespace) -> int:
    summary = service.register(args.email, _read_password(), args.name)
    if args.role:
        service.db.assign_role(summary.id, args.role)
    print(f"Created {summary.email} ({summary.id})")
    return 0


def cmd_assign_role(service: CredentialService, args: argparse.Namespace) -> int:
    account = service.db.get_account_by_email(args.email.strip().lower())
    if account is None:
        print(f"No account for {args.email}", file=sys.stderr)
        return 1

    service.db.assign_role(account.user_id, args.role)
    print(f"Assigned {args.role} to {account.email}")
    return 0


def cmd_cleanup_sessions(service: CredentialService, args: argparse.Namespace) -> int:
    deleted = service.db.cleanup_expired_sessions()
    print(f"Deleted {deleted} revoked and expired sessions")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hris-auth", description="HRIS auth administration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create schema, permissions and system roles")
    init.add_argument("--admin-email", help="Also create a super_admin account")
    init.set_defaults(handler=cmd_init)

    create_user = subparsers.add_parser("create-user", help="Register an account")
    create_user.add_argument("email")
    create_user.add_argument("name")
    create_user.add_argument("--role", help="Role to assign after creation")
    create_user.set_defaults(handler=cmd_create_user)

    assign = subparsers.add_parser("assign-role", help="Assign a role to an account")
    assign.add_argument("email")
    assign.add_argument("role")
    assign.set_defaults(handler=cmd_assign_role)

    cleanup = subparsers.add_parser("cleanup-sessions", help="Delete revoked and expired sessions")
    cleanup.set_defaults(handler=cmd_cleanup_sessions)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    service = CredentialService.from_settings(settings)

    try:
        return args.handler(service, args)
    except ValidationError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except AuthError as e:
        logger.error(str(e))
        print(e.public_message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
