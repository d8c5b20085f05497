"""Transaction management commands."""

import click
from tallybook.domain.entities import TransactionStatus, TransactionType
from tallybook.domain.transaction import TransactionService
from tallybook.cli.date_filters import resolve_cli_date_range
from tallybook.cli.error_handling import handle_domain_error


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


@transaction_group.command("list")
@click.option("--type", "txn_type", type=click.Choice([t.value for t in TransactionType]), help="Transaction type")
@click.option("--status", type=click.Choice([s.value for s in TransactionStatus]), help="Transaction status")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like '30 days ago')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@click.pass_context
def list_transactions(ctx, txn_type: str | None, status: str | None, start_date: str | None, end_date: str | None):
    """List transactions with their balances and statuses."""
    db = ctx.obj["db"]
    service = TransactionService(db)

    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)

    transactions = service.list_transactions(
        type=TransactionType(txn_type) if txn_type else None,
        status=TransactionStatus(status) if status else None,
        start_date=start,
        end_date=end,
    )

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 96)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Type':<14} {'Reference':<14} {'Amount':>14} {'Balance':>14} {'Status':<16}"
    )
    click.echo("-" * 96)

    for txn in transactions:
        amount_str = f"${txn.amount:,.2f}"
        balance_str = f"${txn.balance:,.2f}"
        click.echo(
            f"{txn.id:<6} {str(txn.date):<12} {txn.type.value:<14} {txn.reference[:14]:<14} "
            f"{amount_str:>14} {balance_str:>14} {txn.status.value:<16}"
        )


@transaction_group.command("show")
@click.argument("transaction_id", type=int)
@click.pass_context
def show_transaction(ctx, transaction_id: int):
    """Show a transaction with its line items and applications."""
    db = ctx.obj["db"]
    service = TransactionService(db)

    txn = service.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    click.echo(f"\n{txn.type.value.replace('_', ' ').capitalize()} #{txn.reference} (ID: {txn.id})")
    click.echo(f"  Date: {txn.date}")
    click.echo(f"  Status: {txn.status.value}")
    if txn.description:
        click.echo(f"  Description: {txn.description}")

    line_items = service.get_line_items(txn.id)
    if line_items:
        click.echo(f"  Pricing: tax {txn.pricing_mode.value}")
        click.echo("  Line items:")
        for item in line_items:
            tax = f" [tax {item.tax_rate_id}]" if item.tax_rate_id is not None else ""
            click.echo(
                f"    {item.description or '-'}: {item.quantity} x ${item.unit_price:,.2f} = ${item.amount:,.2f}{tax}"
            )
        click.echo(f"  Subtotal: ${txn.sub_total:,.2f}")
        click.echo(f"  Tax: ${txn.tax_amount:,.2f}")

    click.echo(f"  Amount: ${txn.amount:,.2f}")
    if txn.foreign_amount is not None:
        click.echo(f"  Foreign amount: {txn.foreign_amount:,.2f} {txn.currency} at {txn.exchange_rate}")
    click.echo(f"  Balance: ${txn.balance:,.2f}")

    as_source = txn.type.is_credit_source
    if as_source:
        entries = service.ledger.list_applications(source_id=txn.id)
    else:
        entries = service.ledger.list_applications(target_id=txn.id)

    if entries:
        click.echo("  Applications:")
        for entry in entries:
            other_id = entry.target_id if as_source else entry.source_id
            other = service.get_transaction(other_id)
            name = f"{other.type.value} #{other.reference}" if other else f"transaction {other_id}"
            click.echo(f"    ${entry.amount_applied:,.2f} {'to' if as_source else 'from'} {name}")

    if txn.type.is_credit_source:
        click.echo(f"  Unapplied credit: ${service.ledger.remaining_credit(txn.id):,.2f}")


@transaction_group.command("cancel")
@click.argument("transaction_id", type=int)
@click.pass_context
def cancel_transaction(ctx, transaction_id: int) -> None:
    """Cancel a transaction that has nothing applied to or from it."""
    db = ctx.obj["db"]
    service = TransactionService(db)

    try:
        service.cancel_transaction(transaction_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Cancelled transaction {transaction_id}")


@transaction_group.command("delete")
@click.argument("transaction_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_transaction(ctx, transaction_id: int, yes: bool) -> None:
    """Delete a transaction.

    Anything it applied is given back to the other side first.

    Examples:
        tallybook transaction delete 1
        tallybook transaction delete 1 --yes
    """
    db = ctx.obj["db"]
    service = TransactionService(db)

    # Get transaction info for display
    txn = service.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    # Confirm deletion
    if not yes and not click.confirm(f"Are you sure you want to delete {txn.type.value} #{txn.reference}?"):
        click.echo("Deletion cancelled.")
        return

    try:
        result = service.delete_transaction(transaction_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Deleted transaction {transaction_id}")
    related = [d for d in result["deleted"] if d != transaction_id]
    if related:
        click.echo(f"  Also deleted: {', '.join(str(d) for d in related)}")
    if result["restored"]:
        click.echo(f"  Restored balances: {', '.join(str(r) for r in result['restored'])}")


def register_commands(cli: click.Group) -> None:
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
