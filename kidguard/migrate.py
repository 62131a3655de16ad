#!/usr/bin/env python3
"""Database migration runner.

This script runs SQL migrations in order and tracks which migrations have been applied.
It is idempotent and safe to run multiple times. The application also calls
``apply_pending_migrations`` on startup so a fresh database is usable immediately.

Usage:
    python -m kidguard.migrate              # Run all pending migrations
    python -m kidguard.migrate --dry-run    # Show which migrations would be run
    python -m kidguard.migrate --reset      # Reset migration tracking (danger!)
"""
import asyncio
import argparse
import logging
import os
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import List, Set, Tuple
import asyncpg

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


async def create_migrations_table(conn: asyncpg.Connection):
    """Create the schema_migrations table if it doesn't exist."""
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ DEFAULT NOW(),
            description TEXT
        );
    """)


async def get_applied_migrations(conn: asyncpg.Connection) -> Set[str]:
    """Get the set of already-applied migration versions."""
    rows = await conn.fetch("SELECT version FROM schema_migrations ORDER BY version")
    return {row['version'] for row in rows}


def find_migration_files(migrations_dir: Path) -> List[Tuple[str, str, Path, str]]:
    """Find all SQL migration files in order.

    Returns list of tuples: (version, filename, full_path, description)
    """
    migrations = []

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return migrations

    for file_path in sorted(migrations_dir.glob("*.sql")):
        # "001_initial_schema.sql" -> ("001", "initial schema")
        filename = file_path.name
        parts = filename.split('_', 1)

        if len(parts) != 2:
            logger.warning("Skipping invalid migration filename: %s", filename)
            continue

        version = parts[0]
        description = parts[1].replace('.sql', '').replace('_', ' ')

        migrations.append((version, filename, file_path, description))

    return migrations


async def apply_migration(conn: asyncpg.Connection, version: str, file_path: Path, description: str, dry_run: bool = False):
    """Apply a single migration file inside its own transaction."""
    sql = file_path.read_text()

    if dry_run:
        print(f"  [DRY RUN] Would execute SQL from: {file_path}")
        print(f"  [DRY RUN] SQL preview (first 200 chars): {sql[:200]}...")
        return

    async with conn.transaction():
        await conn.execute(sql)
        await conn.execute(
            """
            INSERT INTO schema_migrations (version, applied_at, description)
            VALUES ($1, $2, $3)
            ON CONFLICT (version) DO NOTHING
            """,
            version,
            datetime.now(timezone.utc),
            description
        )

    logger.info("Applied migration %s: %s", version, description)


async def apply_pending_migrations(conn: asyncpg.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> List[str]:
    """
    Apply every migration that has not been recorded yet.

    Args:
        conn: Open database connection
        migrations_dir: Directory holding NNN_description.sql files

    Returns:
        Versions applied by this call, in order
    """
    await create_migrations_table(conn)
    applied = await get_applied_migrations(conn)

    newly_applied = []
    for version, _, file_path, description in find_migration_files(migrations_dir):
        if version in applied:
            continue
        await apply_migration(conn, version, file_path, description)
        newly_applied.append(version)

    return newly_applied


async def reset_migrations(conn: asyncpg.Connection, dry_run: bool = False):
    """Reset migration tracking table (DANGER!)."""
    if dry_run:
        print("[DRY RUN] Would drop and recreate schema_migrations table")
        return

    print("WARNING: Resetting migration tracking...")
    await conn.execute("DROP TABLE IF EXISTS schema_migrations")
    await create_migrations_table(conn)
    print("Migration tracking has been reset")


async def run_migrations(database_url: str, migrations_dir: Path, dry_run: bool = False, reset: bool = False):
    """Main migration runner."""
    print(f"Database: {database_url.split('@')[-1]}")  # Hide credentials
    print(f"Migrations directory: {migrations_dir}")
    print(f"Mode: {'DRY RUN' if dry_run else 'APPLY'}")
    print("-" * 60)

    try:
        conn = await asyncpg.connect(database_url)
    except (OSError, asyncpg.PostgresError) as e:
        print("ERROR: Failed to connect to database")
        print(f"  {type(e).__name__}: {e}")
        sys.exit(1)

    try:
        if reset:
            await reset_migrations(conn, dry_run)
            if not dry_run:
                return

        if dry_run:
            await create_migrations_table(conn)
            applied = await get_applied_migrations(conn)
            pending = [m for m in find_migration_files(migrations_dir) if m[0] not in applied]
            if not pending:
                print("\nNo pending migrations to apply")
                return
            for version, _, file_path, description in pending:
                print(f"\nPending migration {version}: {description}")
                await apply_migration(conn, version, file_path, description, dry_run=True)
            print("\nDRY RUN complete - no changes made")
            return

        applied_now = await apply_pending_migrations(conn, migrations_dir)
        if not applied_now:
            print("\nNo pending migrations to apply")
        else:
            print(f"\nSUCCESS: Applied {len(applied_now)} migrations: {', '.join(applied_now)}")

    finally:
        await conn.close()


def main():
    parser = argparse.ArgumentParser(description="Run database migrations")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show which migrations would be run without applying them"
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Reset migration tracking table (DANGER!)"
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="Database connection URL (default: DATABASE_URL env var)"
    )
    parser.add_argument(
        "--migrations-dir",
        default=str(MIGRATIONS_DIR),
        help="Directory containing migration files (default: bundled migrations)"
    )

    args = parser.parse_args()

    if not args.database_url:
        print("ERROR: DATABASE_URL environment variable not set and --database-url not provided")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    asyncio.run(run_migrations(
        database_url=args.database_url,
        migrations_dir=Path(args.migrations_dir).resolve(),
        dry_run=args.dry_run,
        reset=args.reset
    ))


if __name__ == "__main__":
    main()
