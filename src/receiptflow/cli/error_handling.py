"""CLI error handling helpers."""

import click

from receiptflow.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def parse_field_assignments(ctx: click.Context, values: tuple[str, ...]) -> dict[str, str]:
    """Turn repeated ``--set field=value`` options into a corrections mapping.

    An empty value (``--set category=``) clears the field.
    """
    corrections = {}
    for value in values:
        key, sep, raw = value.partition("=")
        if not sep or not key.strip():
            click.echo(f"Error: Expected field=value, got '{value}'", err=True)
            ctx.exit(1)
        corrections[key.strip()] = raw
    return corrections
