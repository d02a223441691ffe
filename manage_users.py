#!/usr/bin/env python3
"""
User management for the Competition Dashboard
Creates sign-in accounts and assigns volunteer / judge / admin roles
"""

import argparse
import getpass
import sys

from config import settings, setup_logging
from database import DatabaseManager
from models import UserRole
from services import IdentityGate, IdentityProvider


def build_gate(db_path: str) -> IdentityGate:
    db_manager = DatabaseManager(db_path)
    db_manager.initialize_database()
    provider = IdentityProvider(db_manager, iterations=settings.password_hash_iterations)
    return IdentityGate(db_manager, provider=provider)


def add_user(gate: IdentityGate, args) -> bool:
    password = args.password or getpass.getpass(f"Password for {args.email}: ")
    success, message, uid = gate.provider.create_account(args.email, password)
    print(f"{'✅' if success else '❌'} {message}")
    if not success:
        return False

    success, message = gate.provision_user(uid, args.email, args.role, args.name or "")
    print(f"{'✅' if success else '❌'} {message}")
    return success


def list_users(gate: IdentityGate, args) -> bool:
    users = gate.list_users()
    if not users:
        print("No users provisioned")
        return True

    print(f"{'Email':<35} {'Role':<10} Name")
    print("-" * 70)
    for user in users:
        print(f"{user.email:<35} {user.role.value:<10} {user.name}")
    return True


def set_role(gate: IdentityGate, args) -> bool:
    user = next((u for u in gate.list_users() if u.email.lower() == args.email.lower()), None)
    if user is None:
        print(f"❌ No user with email {args.email}")
        return False

    success, message = gate.provision_user(user.uid, user.email, args.role, user.name)
    print(f"{'✅' if success else '❌'} {message}")
    return success


def set_password(gate: IdentityGate, args) -> bool:
    password = args.password or getpass.getpass(f"New password for {args.email}: ")
    success, message = gate.provider.set_password(args.email, password)
    print(f"{'✅' if success else '❌'} {message}")
    return success


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Manage dashboard accounts and roles",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--db", default=settings.db_path, help="SQLite database file path (env: DB_PATH)")
    commands = parser.add_subparsers(dest="command", required=True)
    roles = [role.value for role in UserRole]

    add = commands.add_parser("add", help="Create an account and assign a role")
    add.add_argument("email")
    add.add_argument("role", choices=roles)
    add.add_argument("--name", help="Display name")
    add.add_argument("--password", help="Prompted for when omitted")
    add.set_defaults(handler=add_user)

    listing = commands.add_parser("list", help="List provisioned users")
    listing.set_defaults(handler=list_users)

    role = commands.add_parser("set-role", help="Change the role of an existing user")
    role.add_argument("email")
    role.add_argument("role", choices=roles)
    role.set_defaults(handler=set_role)

    password = commands.add_parser("set-password", help="Reset the password of an account")
    password.add_argument("email")
    password.add_argument("--password", help="Prompted for when omitted")
    password.set_defaults(handler=set_password)

    args = parser.parse_args(argv)
    setup_logging(settings.log_level)

    gate = build_gate(args.db)
    return 0 if args.handler(gate, args) else 1


if __name__ == "__main__":
    sys.exit(main())
