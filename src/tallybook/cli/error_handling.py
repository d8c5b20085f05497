"""CLI error handling helpers."""

import click

from tallybook.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    bound = getattr(error, "bound", None)
    if bound:
        click.echo(f"Error: {error} (limit: {bound.replace('_', ' ')})", err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
