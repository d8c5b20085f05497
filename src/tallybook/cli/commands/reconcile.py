"""Balance reconciliation command."""

import click
from tallybook.domain.reconciliation import ReconciliationService


@click.command("reconcile")
@click.option("--transaction", "transaction_id", type=int, help="Reconcile only this transaction")
@click.option(
    "--no-legacy",
    is_flag=True,
    help="Ignore payments recorded only in posting descriptions",
)
@click.option("--verbose", "-v", is_flag=True, help="List every problem that was skipped")
@click.pass_context
def reconcile(ctx, transaction_id: int | None, no_legacy: bool, verbose: bool):
    """Recompute balances and statuses from recorded applications.

    Safe to run at any time; running it twice changes nothing the second time.
    """
    db = ctx.obj["db"]
    service = ReconciliationService(db, use_legacy_evidence=not no_legacy)

    if transaction_id is not None:
        if db.get_transaction(transaction_id) is None:
            click.echo(f"Error: Transaction {transaction_id} not found", err=True)
            ctx.exit(1)
        summary = service.reconcile_transaction(transaction_id)
    else:
        summary = service.run()

    click.echo("Reconciliation complete:")
    click.echo(f"  Updated: {summary.updated}")
    click.echo(f"  Unchanged: {summary.unchanged}")
    click.echo(f"  Skipped: {summary.skipped}")
    if transaction_id is None:
        click.echo(f"  Orphaned credits folded: {summary.orphans_folded}")

    if summary.errors:
        if verbose:
            click.echo("\nProblems:")
            for error in summary.errors:
                click.echo(f"  - {error}")
        else:
            click.echo(f"  {len(summary.errors)} problem(s) found; use --verbose to list them")


def register_commands(cli: click.Group) -> None:
    """Register reconcile command with main CLI."""
    cli.add_command(reconcile)
