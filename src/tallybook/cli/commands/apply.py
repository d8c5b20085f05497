"""Commands for applying credits to invoices and bills."""

import click
from tallybook.domain.applications import ApplicationLedgerService
from tallybook.cli.error_handling import handle_domain_error
from tallybook.utils.amount_parser import parse_amount


def _describe(db, transaction_id: int) -> str:
    txn = db.get_transaction(transaction_id)
    if txn is None:
        return f"transaction {transaction_id}"
    return f"{txn.type.value} #{txn.reference}"


@click.command("apply")
@click.argument("source_id", type=int)
@click.argument("target_id", type=int)
@click.argument("amount")
@click.pass_context
def apply_credit(ctx, source_id: int, target_id: int, amount: str):
    """Apply AMOUNT of a payment, deposit or cheque to an invoice or bill.

    Examples:
        tallybook apply 4 1 200.00
    """
    db = ctx.obj["db"]
    ledger = ApplicationLedgerService(db)

    try:
        applied = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        entry = ledger.apply_credit(source_id, target_id, applied)
    except ValueError as e:
        handle_domain_error(ctx, e)

    target = db.get_transaction(target_id)
    click.echo(
        f"Applied ${entry.amount_applied:,.2f} from {_describe(db, source_id)} "
        f"to {_describe(db, target_id)}"
    )
    click.echo(f"  Remaining credit: ${ledger.remaining_credit(source_id):,.2f}")
    click.echo(f"  Target balance: ${target.balance:,.2f} ({target.status.value})")


@click.command("unapply")
@click.argument("source_id", type=int)
@click.argument("target_id", type=int)
@click.pass_context
def remove_credit(ctx, source_id: int, target_id: int):
    """Reverse everything applied from SOURCE_ID to TARGET_ID.

    Examples:
        tallybook unapply 4 1
    """
    db = ctx.obj["db"]
    ledger = ApplicationLedgerService(db)

    try:
        removed = ledger.remove_credit(source_id, target_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    target = db.get_transaction(target_id)
    click.echo(
        f"Removed ${removed:,.2f} applied from {_describe(db, source_id)} "
        f"to {_describe(db, target_id)}"
    )
    click.echo(f"  Remaining credit: ${ledger.remaining_credit(source_id):,.2f}")
    click.echo(f"  Target balance: ${target.balance:,.2f} ({target.status.value})")


def register_commands(cli: click.Group) -> None:
    """Register application commands with main CLI."""
    cli.add_command(apply_credit)
    cli.add_command(remove_credit)
