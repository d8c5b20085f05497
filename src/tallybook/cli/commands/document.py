"""Invoice, bill, expense and sales receipt commands."""

from decimal import Decimal

import click
from tallybook.domain.entities import PricingMode, Totals, TransactionType
from tallybook.domain.transaction import TransactionService
from tallybook.cli.error_handling import handle_domain_error
from tallybook.utils.amount_parser import parse_amount
from tallybook.utils.date_parser import parse_date
from tallybook.utils.line_item_parser import parse_line_item
from tallybook.utils.money import format_rate
from tallybook.utils.tax_rate_resolver import resolve_tax_rate

ITEM_HELP = "Line item as 'DESCRIPTION|QTY|PRICE[|TAX]' or 'DESCRIPTION|AMOUNT[|TAX]' (repeatable)"


def _parse_items(ctx, service: TransactionService, items: tuple[str, ...]):
    if not items:
        click.echo("Error: At least one --item is required", err=True)
        ctx.exit(1)
    try:
        return [
            parse_line_item(item, lambda ref: resolve_tax_rate(service.tax_service, ref))
            for item in items
        ]
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


def _parse_tax_options(ctx, service: TransactionService, tax_override: str | None, tax_components: tuple[str, ...]):
    manual_tax = None
    if tax_override is not None:
        try:
            manual_tax = parse_amount(tax_override)
        except ValueError as e:
            click.echo(f"Error: Invalid tax override: {e}", err=True)
            ctx.exit(1)

    component_overrides: dict[int, Decimal] = {}
    for value in tax_components:
        name, sep, amount = value.rpartition("=")
        if not sep or not name:
            click.echo(f"Error: Invalid tax component '{value}': expected TAX=AMOUNT", err=True)
            ctx.exit(1)
        try:
            component_overrides[resolve_tax_rate(service.tax_service, name)] = parse_amount(amount)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

    return manual_tax, component_overrides or None


def _echo_totals(totals: Totals) -> None:
    click.echo(f"  Subtotal: ${totals.sub_total:,.2f}")
    for component in totals.tax_components:
        click.echo(f"  {component.name} ({format_rate(component.rate)}%): ${component.amount:,.2f}")
    if totals.is_tax_overridden:
        click.echo(f"  Tax: ${totals.tax_amount:,.2f} (calculated ${totals.computed_tax_amount:,.2f})")
    else:
        click.echo(f"  Tax: ${totals.tax_amount:,.2f}")
    click.echo(f"  Total: ${totals.total:,.2f}")


def make_document_group(transaction_type: TransactionType) -> click.Group:
    """Build the create/edit command group for one document type."""
    label = transaction_type.value.replace("_", " ")

    @click.group(help=f"Manage {label}s.")
    def group():
        pass

    @group.command("create")
    @click.option("--reference", required=True, help=f"{label.capitalize()} number")
    @click.option("--date", "date_str", default="today", help="Date (YYYY-MM-DD or relative like 'today')")
    @click.option("--item", "items", multiple=True, help=ITEM_HELP)
    @click.option("--inclusive", is_flag=True, help="Item prices already include tax")
    @click.option("--tax-override", help="Use this tax amount instead of the calculated one")
    @click.option("--tax-component", "tax_components", multiple=True, help="Override one component as TAX=AMOUNT (repeatable)")
    @click.option("--currency", help="Currency code when not the home currency (e.g., USD)")
    @click.option("--exchange-rate", help="Rate from the document currency to the home currency")
    @click.option("--description", help="Description")
    @click.pass_context
    def create(
        ctx,
        reference: str,
        date_str: str,
        items: tuple[str, ...],
        inclusive: bool,
        tax_override: str | None,
        tax_components: tuple[str, ...],
        currency: str | None,
        exchange_rate: str | None,
        description: str | None,
    ):
        """Create a document from line items.

        Examples:
            tallybook invoice create --reference 1001 --item "Consulting|3|100|GST+QST"
            tallybook bill create --reference B-7 --item "Hosting|49.99" --inclusive
        """
        db = ctx.obj["db"]
        service = TransactionService(db)

        try:
            doc_date = parse_date(date_str)
        except ValueError as e:
            click.echo(f"Error: Invalid date format: {e}", err=True)
            ctx.exit(1)

        line_items = _parse_items(ctx, service, items)
        manual_tax, component_overrides = _parse_tax_options(ctx, service, tax_override, tax_components)

        rate = None
        if exchange_rate is not None:
            try:
                rate = parse_amount(exchange_rate)
            except ValueError as e:
                click.echo(f"Error: Invalid exchange rate: {e}", err=True)
                ctx.exit(1)
        if (currency is None) != (rate is None):
            click.echo("Error: --currency and --exchange-rate must be given together", err=True)
            ctx.exit(1)

        pricing_mode = PricingMode.INCLUSIVE if inclusive else PricingMode.EXCLUSIVE
        try:
            totals = service.compute_totals(line_items, pricing_mode, manual_tax, component_overrides)
            transaction_id = service.create_document(
                type=transaction_type,
                reference=reference,
                date=doc_date,
                line_items=line_items,
                pricing_mode=pricing_mode,
                manual_tax_override=manual_tax,
                component_overrides=component_overrides,
                currency=currency.upper() if currency else None,
                exchange_rate=rate,
                description=description,
            )
        except ValueError as e:
            handle_domain_error(ctx, e)

        txn = service.get_transaction(transaction_id)
        click.echo(f"Created {label} #{txn.reference} (ID: {transaction_id})")
        _echo_totals(totals)
        if txn.foreign_amount is not None:
            click.echo(f"  Home amount: ${txn.amount:,.2f} ({txn.currency} at {txn.exchange_rate})")

    @group.command("edit")
    @click.argument("transaction_id", type=int)
    @click.option("--item", "items", multiple=True, help=ITEM_HELP)
    @click.option("--inclusive", is_flag=True, help="Item prices already include tax")
    @click.option("--tax-override", help="Use this tax amount instead of the calculated one")
    @click.option("--tax-component", "tax_components", multiple=True, help="Override one component as TAX=AMOUNT (repeatable)")
    @click.pass_context
    def edit(
        ctx,
        transaction_id: int,
        items: tuple[str, ...],
        inclusive: bool,
        tax_override: str | None,
        tax_components: tuple[str, ...],
    ):
        """Replace a document's line items.

        The new total may not drop below what has already been applied.
        """
        db = ctx.obj["db"]
        service = TransactionService(db)

        txn = service.get_transaction(transaction_id)
        if txn is None or txn.type is not transaction_type:
            click.echo(f"Error: {label.capitalize()} {transaction_id} not found", err=True)
            ctx.exit(1)

        line_items = _parse_items(ctx, service, items)
        manual_tax, component_overrides = _parse_tax_options(ctx, service, tax_override, tax_components)
        pricing_mode = PricingMode.INCLUSIVE if inclusive else PricingMode.EXCLUSIVE

        try:
            totals = service.compute_totals(line_items, pricing_mode, manual_tax, component_overrides)
            updated = service.update_line_items(
                transaction_id,
                line_items,
                pricing_mode=pricing_mode,
                manual_tax_override=manual_tax,
                component_overrides=component_overrides,
            )
        except ValueError as e:
            handle_domain_error(ctx, e)

        click.echo(f"Updated {label} #{updated.reference}")
        _echo_totals(totals)
        click.echo(f"  Balance: ${updated.balance:,.2f} ({updated.status.value})")

    return group


invoice_group = make_document_group(TransactionType.INVOICE)
bill_group = make_document_group(TransactionType.BILL)
expense_group = make_document_group(TransactionType.EXPENSE)
sales_receipt_group = make_document_group(TransactionType.SALES_RECEIPT)


def register_commands(cli: click.Group) -> None:
    """Register document commands with main CLI."""
    cli.add_command(invoice_group, name="invoice")
    cli.add_command(bill_group, name="bill")
    cli.add_command(expense_group, name="expense")
    cli.add_command(sales_receipt_group, name="sales-receipt")
