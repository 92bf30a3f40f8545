#!/usr/bin/env python3
"""CLI tool to create administrator accounts."""
import argparse
import getpass
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from agenda import config
from agenda.auth import ALL_CAPABILITIES, AdminAuthManager


def main():
    """Create an administrator."""
    parser = argparse.ArgumentParser(description="Create an admin panel account")
    parser.add_argument("email", help="Login e-mail")
    parser.add_argument(
        "--capability",
        action="append",
        choices=sorted(ALL_CAPABILITIES),
        help="Grant only this capability (repeatable, default: all)"
    )
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("Passwords do not match")
        sys.exit(1)

    manager = AdminAuthManager(database_url=config.DATABASE_URL)
    try:
        manager.create_admin(args.email, password, args.capability)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    granted = args.capability or sorted(ALL_CAPABILITIES)
    print(f"\nAdministrator created: {args.email.strip().lower()}")
    print(f"   Capabilities: {', '.join(granted)}")
    print("\nLog in with:")
    print("  curl -X POST http://localhost:8000/api/v1/admin/login \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{args.email}\", \"password\": \"...\"}}'\n")


if __name__ == "__main__":
    main()
