"""CLI tool for admin operations.

Usage:
    python -m backend.cli create-admin
    python -m backend.cli enable-2fa <username>
    python -m backend.cli disable-2fa <username>
"""

import sys
import getpass

import qrcode
from sqlmodel import Session

from backend.database import engine, create_db_and_tables
from backend.services.accounts import (
    create_user,
    disable_two_factor,
    enable_two_factor,
    get_user_by_username,
)
from backend.services.two_factor import generate_setup
from backend.utils.logging import setup_logging


def create_admin():
    """Create an admin user with a password. 2FA is enabled separately."""
    create_db_and_tables()

    username = input("Username: ").strip()
    if not username:
        print("Username cannot be empty.")
        sys.exit(1)

    with Session(engine) as session:
        if get_user_by_username(session, username):
            print(f"User '{username}' already exists.")
            sys.exit(1)

    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        print("Passwords do not match.")
        sys.exit(1)

    with Session(engine) as session:
        create_user(session, username, password)

    print(f"\nAdmin user '{username}' created successfully.")
    print(f"Run 'python -m backend.cli enable-2fa {username}' to turn on two-factor login.")


def enable_2fa(username: str):
    """Provision TOTP for an existing admin and print the enrollment details once."""
    create_db_and_tables()

    with Session(engine) as session:
        user = get_user_by_username(session, username)
        if user is None:
            print(f"User '{username}' not found.")
            sys.exit(1)
        if user.two_factor_enabled:
            print(f"2FA is already enabled for '{username}'.")
            sys.exit(1)

        setup = generate_setup(username)
        enable_two_factor(session, user, setup.secret, setup.backup_codes)

    print(f"\n2FA enabled for '{username}'.")
    print(f"\nTOTP Secret: {setup.secret}")
    print(f"TOTP URI: {setup.enrollment_uri}")
    print("\nScan the QR code below with your authenticator app:")

    qr = qrcode.QRCode(box_size=1, border=1)
    qr.add_data(setup.enrollment_uri)
    qr.make(fit=True)
    qr.print_ascii(invert=True)

    print("\nBackup codes (each works once, store them somewhere safe):")
    for code in setup.backup_codes:
        print(f"  {code}")


def disable_2fa(username: str):
    create_db_and_tables()

    with Session(engine) as session:
        user = get_user_by_username(session, username)
        if user is None:
            print(f"User '{username}' not found.")
            sys.exit(1)
        if not user.two_factor_enabled:
            print(f"2FA is not enabled for '{username}'.")
            sys.exit(1)
        disable_two_factor(session, user)

    print(f"2FA disabled for '{username}'.")


def main():
    setup_logging()

    if len(sys.argv) < 2:
        print("Usage: python -m backend.cli <command> [username]")
        print("Commands: create-admin, enable-2fa, disable-2fa")
        sys.exit(1)

    command = sys.argv[1]
    if command == "create-admin":
        create_admin()
    elif command in ("enable-2fa", "disable-2fa"):
        if len(sys.argv) < 3:
            print(f"Usage: python -m backend.cli {command} <username>")
            sys.exit(1)
        if command == "enable-2fa":
            enable_2fa(sys.argv[2])
        else:
            disable_2fa(sys.argv[2])
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
