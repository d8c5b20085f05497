#!/usr/bin/env python3
"""Migration script to add multi-currency columns to the transactions table.

This migration adds three columns to the transactions table:
- currency (VARCHAR(3), NULL for the home currency)
- exchange_rate (NUMERIC(18, 8), NULL for the home currency)
- foreign_amount (NUMERIC(14, 2), NULL for the home currency)

Existing rows keep NULL in all three, meaning they are in the home currency.

Usage:
    python migrations/migrate_add_currency_columns.py [--db-path PATH]
"""

import sys
from pathlib import Path

# Add src to path so we can import tallybook modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import text, inspect
from tallybook.database.factories import create_sqlite_database

NEW_COLUMNS = [
    ("currency", "VARCHAR(3)"),
    ("exchange_rate", "NUMERIC(18, 8)"),
    ("foreign_amount", "NUMERIC(14, 2)"),
]


def column_exists(engine, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table.

    Args:
        engine: SQLAlchemy engine
        table_name: Name of the table
        column_name: Name of the column

    Returns:
        True if column exists, False otherwise
    """
    inspector = inspect(engine)
    columns = [col["name"] for col in inspector.get_columns(table_name)]
    return column_name in columns


def migrate_database(database_path: str | None = None) -> list[str]:
    """Add any missing currency columns.

    Args:
        database_path: Path to database file. If None, uses default location.

    Returns:
        Names of the columns that were added

    Raises:
        Exception: If migration fails
    """
    db = create_sqlite_database(database_path=database_path)
    db.connect()

    try:
        session = db.session_factory()
        try:
            engine = session.bind
            if engine is None:
                raise Exception("Could not get database engine from session")
        finally:
            session.close()

        inspector = inspect(engine)
        if "transactions" not in inspector.get_table_names():
            raise Exception("Table 'transactions' does not exist. Please initialize the database schema first.")

        missing = [(name, sql_type) for name, sql_type in NEW_COLUMNS if not column_exists(engine, "transactions", name)]
        if not missing:
            print("Migration already applied: currency columns exist in transactions table")
            return []

        print("Starting migration: adding currency columns...")
        with engine.begin() as conn:
            for name, sql_type in missing:
                conn.execute(text(f"ALTER TABLE transactions ADD COLUMN {name} {sql_type}"))
                print(f"  Added column: {name}")

        print("Migration completed successfully!")
        return [name for name, _ in missing]

    except Exception as e:
        print(f"Migration failed: {e}")
        raise
    finally:
        db.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(description="Migrate database to add currency columns")
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides TALLYBOOK_DB_PATH environment variable)",
    )
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
