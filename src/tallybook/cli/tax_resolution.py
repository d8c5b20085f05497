"""CLI helpers for tax rate resolution."""

from __future__ import annotations

import click
from tallybook.domain.tax import TaxService
from tallybook.utils.tax_rate_resolver import resolve_tax_rate


def resolve_tax_rate_or_exit(ctx: click.Context, tax_service: TaxService, tax_rate: str | int) -> int:
    """Resolve tax rate name or ID, or exit with a CLI error."""
    try:
        return resolve_tax_rate(tax_service, tax_rate)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
