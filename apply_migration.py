#!/usr/bin/env python3
"""
Print the ingestion schema migration for manual application.

The REST gateway cannot run DDL, so the SQL is applied through the Supabase
SQL editor, or through the direct connection when one is configured.
"""

import sys
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).resolve().parent / "database" / "migrations"


def apply_migration(name: str = "001_initial_schema.sql") -> bool:
    """Show the migration SQL and how to run it."""
    migration_path = MIGRATIONS_DIR / name

    if not migration_path.exists():
        print(f"Migration file not found: {migration_path}")
        return False

    migration_sql = migration_path.read_text(encoding='utf-8')

    print(f"Database Migration: {name}")
    print("=" * 60)
    print(migration_sql)
    print("=" * 60)

    print("\n⚠️  MANUAL ACTION REQUIRED:")
    print("Run the SQL above in your Supabase SQL Editor, or with psql against DATABASE_URL:")
    print(f"  psql \"$DATABASE_URL\" -f {migration_path}")
    print("\nAfterwards, verify the gateway can reach the tables with:")
    print("python run.py health database")

    return True


if __name__ == "__main__":
    success = apply_migration(*sys.argv[1:2])
    sys.exit(0 if success else 1)
