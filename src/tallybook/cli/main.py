"""Main CLI entry point."""

import logging

import click
from tallybook.database.factories import create_sqlite_database
from tallybook.domain.reconciliation import ReconciliationService

# Import and register all commands at module level
from tallybook.cli.commands import (
    tax,
    document,
    credit,
    apply,
    transaction,
    reconcile,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides TALLYBOOK_DB_PATH environment variable)",
    envvar="TALLYBOOK_DB_PATH",
)
@click.option(
    "--reconcile-on-start/--no-reconcile-on-start",
    default=True,
    envvar="TALLYBOOK_RECONCILE_ON_START",
    help="Bring stored balances in line with recorded applications before running the command",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="TALLYBOOK_LOG_LEVEL",
    help="Logging level (overrides TALLYBOOK_LOG_LEVEL environment variable)",
)
@click.pass_context
def cli(ctx, db_path: str | None, reconcile_on_start: bool, log_level: str):
    """Tallybook - Invoices, bills and the payments applied to them.

    Compute document totals with standalone and composite taxes, apply
    payments, deposits and cheques to invoices and bills, and keep every
    balance consistent with what has actually been applied.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)

        if reconcile_on_start and ctx.invoked_subcommand != "reconcile":
            summary = ReconciliationService(db).run()
            if summary.updated or summary.orphans_folded:
                logger.info(
                    "Startup reconciliation corrected %d transaction(s) and folded %d credit(s)",
                    summary.updated,
                    summary.orphans_folded,
                )


# Register all commands
tax.register_commands(cli)
document.register_commands(cli)
credit.register_commands(cli)
apply.register_commands(cli)
transaction.register_commands(cli)
reconcile.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
