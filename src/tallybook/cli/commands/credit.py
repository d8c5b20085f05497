"""Payment, deposit and cheque commands."""

from decimal import Decimal

import click
from tallybook.domain.entities import CREDIT_SOURCE_TYPES, TransactionType
from tallybook.domain.transaction import TransactionService
from tallybook.cli.error_handling import handle_domain_error
from tallybook.utils.amount_parser import parse_amount
from tallybook.utils.date_parser import parse_date

CREDIT_TYPE_CHOICES = sorted(t.value for t in CREDIT_SOURCE_TYPES)


@click.group()
def credit_group():
    """Manage payments, deposits and cheques."""
    pass


def _parse_date_or_exit(ctx, date_str: str):
    try:
        return parse_date(date_str)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)


def _parse_amount_or_exit(ctx, amount: str) -> Decimal:
    try:
        return parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)


@credit_group.command("create")
@click.option("--type", "credit_type", type=click.Choice(CREDIT_TYPE_CHOICES), default="deposit", help="Kind of credit")
@click.option("--reference", required=True, help="Reference number")
@click.option("--amount", required=True, help="Amount received (e.g., 500.00)")
@click.option("--date", "date_str", default="today", help="Date (YYYY-MM-DD or relative like 'today')")
@click.option("--currency", help="Currency code when not the home currency")
@click.option("--exchange-rate", help="Rate from the credit currency to the home currency")
@click.option("--description", help="Description")
@click.pass_context
def create_credit(
    ctx,
    credit_type: str,
    reference: str,
    amount: str,
    date_str: str,
    currency: str | None,
    exchange_rate: str | None,
    description: str | None,
):
    """Record a payment, deposit or cheque without applying it.

    Examples:
        tallybook credit create --type deposit --reference D-12 --amount 500
        tallybook credit create --type cheque --reference 3301 --amount 120.50
    """
    db = ctx.obj["db"]
    service = TransactionService(db)

    credit_date = _parse_date_or_exit(ctx, date_str)
    credit_amount = _parse_amount_or_exit(ctx, amount)
    rate = _parse_amount_or_exit(ctx, exchange_rate) if exchange_rate is not None else None
    if (currency is None) != (rate is None):
        click.echo("Error: --currency and --exchange-rate must be given together", err=True)
        ctx.exit(1)

    try:
        transaction_id = service.create_credit_source(
            type=TransactionType(credit_type),
            reference=reference,
            date=credit_date,
            amount=credit_amount,
            description=description,
            currency=currency.upper() if currency else None,
            exchange_rate=rate,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    txn = service.get_transaction(transaction_id)
    click.echo(f"Created {credit_type} #{txn.reference} (ID: {transaction_id})")
    click.echo(f"  Unapplied credit: ${abs(txn.balance):,.2f}")


@credit_group.command("receive")
@click.option("--reference", required=True, help="Payment reference")
@click.option("--amount", required=True, help="Amount received or paid")
@click.option(
    "--apply",
    "applications",
    multiple=True,
    help="Apply part of the payment as TRANSACTION_ID=AMOUNT (repeatable)",
)
@click.option("--cheque", is_flag=True, help="Record the payment as a cheque")
@click.option("--date", "date_str", default="today", help="Date (YYYY-MM-DD or relative like 'today')")
@click.option("--description", help="Description")
@click.pass_context
def receive_payment(
    ctx,
    reference: str,
    amount: str,
    applications: tuple[str, ...],
    cheque: bool,
    date_str: str,
    description: str | None,
):
    """Record a payment and apply it to invoices or bills.

    Whatever is not applied stays on the payment as unapplied credit.

    Examples:
        tallybook credit receive --reference P-1 --amount 344.93 --apply 1=344.93
        tallybook credit receive --reference P-2 --amount 500 --apply 1=200 --apply 2=150
    """
    db = ctx.obj["db"]
    service = TransactionService(db)

    payment_date = _parse_date_or_exit(ctx, date_str)
    payment_amount = _parse_amount_or_exit(ctx, amount)

    targets: dict[int, Decimal] = {}
    for value in applications:
        target, sep, applied = value.partition("=")
        if not sep or not target.strip().isdigit():
            click.echo(f"Error: Invalid application '{value}': expected TRANSACTION_ID=AMOUNT", err=True)
            ctx.exit(1)
        target_id = int(target.strip())
        if target_id in targets:
            click.echo(f"Error: Transaction {target_id} is listed more than once", err=True)
            ctx.exit(1)
        targets[target_id] = _parse_amount_or_exit(ctx, applied)

    payment_type = TransactionType.CHEQUE if cheque else TransactionType.PAYMENT
    try:
        payment_id, entries = service.receive_payment(
            reference=reference,
            date=payment_date,
            amount=payment_amount,
            applications=targets,
            description=description,
            type=payment_type,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Recorded {payment_type.value} #{reference.strip()} (ID: {payment_id})")
    for entry in entries:
        target = service.get_transaction(entry.target_id)
        click.echo(
            f"  Applied ${entry.amount_applied:,.2f} to {target.type.value} #{target.reference} "
            f"(balance ${target.balance:,.2f}, {target.status.value})"
        )
    remaining = service.ledger.remaining_credit(payment_id)
    if remaining > 0:
        click.echo(f"  Unapplied credit: ${remaining:,.2f}")


def register_commands(cli: click.Group) -> None:
    """Register credit commands with main CLI."""
    cli.add_command(credit_group, name="credit")
