"""Tax rate management commands."""

import click
from tallybook.domain.entities import PricingMode
from tallybook.domain.tax import TaxService
from tallybook.cli.error_handling import handle_domain_error
from tallybook.cli.tax_resolution import resolve_tax_rate_or_exit
from tallybook.utils.amount_parser import parse_amount, parse_rate
from tallybook.utils.money import format_rate


@click.group()
def tax_group():
    """Manage tax rates."""
    pass


@tax_group.command("create")
@click.argument("name", metavar="TAX_NAME")
@click.argument("rate", metavar="RATE")
@click.option(
    "--composite",
    is_flag=True,
    help="Create a composite tax whose components are added with add-component",
)
@click.pass_context
def create_tax(ctx, name: str, rate: str, composite: bool):
    """Create a tax rate.

    RATE is a percentage. For a composite tax it is only shown as a label;
    the components carry the rates that are applied.

    Examples:
        tallybook tax create "VAT" 20
        tallybook tax create "GST+QST" 14.975 --composite
    """
    db = ctx.obj["db"]
    service = TaxService(db)

    try:
        tax_rate = parse_rate(rate)
    except ValueError as e:
        click.echo(f"Error: Invalid rate: {e}", err=True)
        ctx.exit(1)

    try:
        tax_rate_id = service.create_tax_rate(name=name, rate=tax_rate, is_composite=composite)
    except ValueError as e:
        handle_domain_error(ctx, e)

    kind = "composite tax" if composite else "tax rate"
    click.echo(f"Created {kind} '{name.strip()}' at {format_rate(tax_rate)}% (ID: {tax_rate_id})")


@tax_group.command("add-component")
@click.argument("parent", metavar="COMPOSITE_TAX")
@click.argument("name", metavar="COMPONENT_NAME")
@click.argument("rate", metavar="RATE")
@click.option("--order", type=int, help="Display position among the components (default: last)")
@click.pass_context
def add_component(ctx, parent: str, name: str, rate: str, order: int | None):
    """Add a component rate to a composite tax.

    COMPOSITE_TAX can be a tax rate name or ID.

    Examples:
        tallybook tax add-component "GST+QST" GST 5
        tallybook tax add-component "GST+QST" QST 9.975
    """
    db = ctx.obj["db"]
    service = TaxService(db)
    parent_id = resolve_tax_rate_or_exit(ctx, service, parent)

    try:
        component_rate = parse_rate(rate)
    except ValueError as e:
        click.echo(f"Error: Invalid rate: {e}", err=True)
        ctx.exit(1)

    try:
        component_id = service.add_component(parent_id, name, component_rate, display_order=order)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Added component '{name.strip()}' at {format_rate(component_rate)}% (ID: {component_id})")


@tax_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include deactivated tax rates")
@click.pass_context
def list_taxes(ctx, include_inactive: bool):
    """List tax rates with their components."""
    db = ctx.obj["db"]
    service = TaxService(db)

    tax_rates = service.list_tax_rates(include_inactive=include_inactive)
    if not tax_rates:
        click.echo("No tax rates found.")
        return

    components: dict[int, list] = {}
    for tax_rate in tax_rates:
        if tax_rate.parent_id is not None:
            components.setdefault(tax_rate.parent_id, []).append(tax_rate)

    click.echo("\nTax rates:")
    click.echo("-" * 60)
    for tax_rate in tax_rates:
        if tax_rate.parent_id is not None:
            continue
        label = " (composite)" if tax_rate.is_composite else ""
        inactive = " [inactive]" if not tax_rate.is_active else ""
        click.echo(f"ID: {tax_rate.id:3d} | {tax_rate.name:20s} | {format_rate(tax_rate.rate)}%{label}{inactive}")
        for component in sorted(components.get(tax_rate.id, []), key=lambda c: (c.display_order, c.id)):
            click.echo(f"         └─ {component.name:17s} | {format_rate(component.rate)}% (ID: {component.id})")


@tax_group.command("deactivate")
@click.argument("tax", metavar="TAX")
@click.pass_context
def deactivate_tax(ctx, tax: str):
    """Hide a tax rate from new documents.

    Documents that already use it keep their tax. TAX can be a name or ID.
    """
    db = ctx.obj["db"]
    service = TaxService(db)
    tax_rate_id = resolve_tax_rate_or_exit(ctx, service, tax)

    try:
        service.deactivate(tax_rate_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Deactivated tax rate {tax_rate_id}")


@tax_group.command("calculate")
@click.argument("amount", metavar="AMOUNT")
@click.argument("tax", metavar="TAX")
@click.option("--inclusive", is_flag=True, help="AMOUNT already includes tax")
@click.pass_context
def calculate_tax(ctx, amount: str, tax: str, inclusive: bool):
    """Show the tax breakdown for a single amount.

    Examples:
        tallybook tax calculate 300 "GST+QST"
        tallybook tax calculate 114.98 "GST+QST" --inclusive
    """
    db = ctx.obj["db"]
    service = TaxService(db)
    tax_rate_id = resolve_tax_rate_or_exit(ctx, service, tax)

    try:
        line_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    pricing_mode = PricingMode.INCLUSIVE if inclusive else PricingMode.EXCLUSIVE
    try:
        breakdown = service.get_resolver().resolve(line_amount, tax_rate_id, pricing_mode)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Subtotal: ${breakdown.subtotal_contribution:,.2f}")
    for component in breakdown.components:
        click.echo(f"  {component.name} ({format_rate(component.rate)}%): ${component.amount:,.2f}")
    click.echo(f"Tax: ${breakdown.tax_amount:,.2f}")
    click.echo(f"Total: ${breakdown.subtotal_contribution + breakdown.tax_amount:,.2f}")


def register_commands(cli: click.Group) -> None:
    """Register tax commands with main CLI."""
    cli.add_command(tax_group, name="tax")
