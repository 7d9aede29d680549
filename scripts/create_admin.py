#!/usr/bin/env python3
"""CLI tool to create an admin account."""
import os
import sys

from dotenv import load_dotenv

from consultation_booking import config
from consultation_booking.auth import AdminExistsError, AdminUserManager
from consultation_booking.database import Database

load_dotenv()


def main():
    """Create admin from arguments, falling back to ADMIN_EMAIL/ADMIN_PASSWORD."""
    email = sys.argv[1] if len(sys.argv) > 1 else os.getenv("ADMIN_EMAIL")
    password = sys.argv[2] if len(sys.argv) > 2 else os.getenv("ADMIN_PASSWORD")

    if not email or not password:
        print("Usage: python scripts/create_admin.py <email> <password>")
        print("\nOr set ADMIN_EMAIL and ADMIN_PASSWORD in .env")
        sys.exit(1)

    database = Database(config.DATABASE_URL)
    database.init()
    manager = AdminUserManager(database)

    try:
        user = manager.create_admin_user(email, password)
    except AdminExistsError as e:
        print(f"\nAdmin already exists: {e.message}")
        sys.exit(1)
    except ValueError as e:
        print(f"\n{e}")
        sys.exit(1)

    print(f"\nAdmin created: {user.email} (id={user.id})")
    print("\nLog in with:")
    print(f"  curl -X POST http://localhost:{config.PORT}/api/auth/login \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{user.email}\", \"password\": \"...\"}}' -c cookies.txt\n")


if __name__ == "__main__":
    main()
