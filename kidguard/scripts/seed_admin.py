"""
Seed Admin User

Creates the initial ADMIN account. Refuses to run when an admin already
exists. Run it once after the first migration.

Usage:
    python -m kidguard.scripts.seed_admin
    python -m kidguard.scripts.seed_admin --email admin@school.example --password '...'

Credentials default to SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD. Without a
password a random one is generated and printed once.
"""

import argparse
import asyncio
import os
import secrets
import sys

import asyncpg

from kidguard.migrate import apply_pending_migrations
from kidguard.services import accounts
from kidguard.services.errors import ConflictError


async def seed_admin(database_url: str, email: str, password: str, first_name: str, last_name: str) -> int:
    """Create the admin account. Returns a process exit code."""
    try:
        conn = await asyncpg.connect(database_url)
    except (OSError, asyncpg.PostgresError) as e:
        print("ERROR: Failed to connect to database")
        print(f"  {type(e).__name__}: {e}")
        return 1

    try:
        await apply_pending_migrations(conn)
        admin = await accounts.seed_admin(conn, email, password, first_name, last_name)
    except ConflictError as e:
        print(f"ERROR: {e.message}")
        return 1
    finally:
        await conn.close()

    print("Admin created successfully!")
    print(f"  Email: {admin.email}")
    print(f"  Name: {admin.first_name} {admin.last_name}")
    print(f"  ID: {admin.id}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Create the initial KidGuard admin user")
    parser.add_argument("--email", default=os.environ.get("SEED_ADMIN_EMAIL", "admin@kidguard.com"))
    parser.add_argument("--password", default=os.environ.get("SEED_ADMIN_PASSWORD"))
    parser.add_argument("--first-name", default="System")
    parser.add_argument("--last-name", default="Admin")
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="Database connection URL (default: DATABASE_URL env var)"
    )
    args = parser.parse_args()

    if not args.database_url:
        print("ERROR: DATABASE_URL environment variable not set and --database-url not provided")
        sys.exit(1)

    password = args.password
    if not password:
        password = secrets.token_urlsafe(12)
        print(f"Generated admin password: {password}")
        print("Store it now; it will not be shown again.")

    sys.exit(asyncio.run(seed_admin(
        args.database_url, args.email, password, args.first_name, args.last_name
    )))


if __name__ == "__main__":
    main()
