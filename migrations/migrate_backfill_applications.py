#!/usr/bin/env python3
"""Migration script to backfill payment_applications from ledger postings.

Books created before the payment_applications table existed only recorded
how payments and credits were applied in ledger posting descriptions, for
example "Payment applied to invoice #1005". This migration reads those
postings, resolves the transactions on both sides and records one
application per posting. Pairs that already have a recorded application are
left alone, so running it twice does nothing the second time.

Postings that are ambiguous or name a missing transaction are reported and
skipped. Balances are recomputed afterwards by a reconciliation pass.

Usage:
    python migrations/migrate_backfill_applications.py [--db-path PATH] [--dry-run]
"""

import sys
from pathlib import Path

# Add src to path so we can import tallybook modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import inspect
from tallybook.database.factories import create_sqlite_database
from tallybook.domain.legacy_evidence import LegacyEvidenceAdapter
from tallybook.domain.reconciliation import ReconciliationService


def migrate_database(database_path: str | None = None, dry_run: bool = False) -> dict[str, int]:
    """Backfill recorded applications from legacy postings.

    Args:
        database_path: Path to database file. If None, uses default location.
        dry_run: Report what would be recorded without writing anything

    Returns:
        Dict with ``created``, ``existing`` and ``warnings`` counts

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

        tables = inspect(engine).get_table_names()
        for table_name in ("transactions", "ledger_entries"):
            if table_name not in tables:
                raise Exception(f"Table '{table_name}' does not exist. Please initialize the database schema first.")
        db.initialize_schema()

        evidence = LegacyEvidenceAdapter(db).collect()
        for warning in evidence.warnings:
            print(f"  Skipped posting: {warning}")

        stats = {"created": 0, "existing": 0, "warnings": len(evidence.warnings)}
        recorded = {
            (entry.source_id, entry.target_id)
            for entry in db.list_applications()
        }

        print("Starting migration: backfilling payment applications...")
        with db.unit_of_work():
            for application in evidence.all():
                pair = (application.source_id, application.target_id)
                if pair in recorded:
                    stats["existing"] += 1
                    continue
                if not dry_run:
                    db.create_application(application.source_id, application.target_id, application.amount)
                print(
                    f"  {'Would record' if dry_run else 'Recorded'} {application.amount} "
                    f"from transaction {application.source_id} to transaction {application.target_id}"
                )
                stats["created"] += 1

        if not dry_run and stats["created"]:
            summary = ReconciliationService(db, use_legacy_evidence=False).run()
            print(f"  Reconciled balances: {summary.updated} updated, {summary.skipped} skipped")

        print(
            f"Migration completed successfully! {stats['created']} created, "
            f"{stats['existing']} already recorded, {stats['warnings']} skipped"
        )
        return stats

    except Exception as e:
        print(f"Migration failed: {e}")
        raise
    finally:
        db.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Backfill payment applications from legacy ledger postings"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides TALLYBOOK_DB_PATH environment variable)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be recorded without writing anything",
    )
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path, dry_run=args.dry_run)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
