"""Exchange rate commands."""

import click

from receiptflow.domain.ledger import rate_text


@click.group()
def fx_group():
    """Exchange rates."""
    pass


@fx_group.command("rate")
@click.argument("from_currency")
@click.argument("to_currency")
@click.pass_context
def show_rate(ctx, from_currency: str, to_currency: str):
    """Show the cached (or freshly fetched) rate for a currency pair."""
    fx_cache = ctx.obj["services"].fx_cache

    rate = fx_cache.get_rate(from_currency, to_currency)
    if rate is None:
        click.echo(f"Error: No rate available for {from_currency.upper()}->{to_currency.upper()}", err=True)
        ctx.exit(1)
    click.echo(f"1 {from_currency.upper()} = {rate_text(rate)} {to_currency.upper()}")


def register_commands(cli):
    """Register fx commands with main CLI."""
    cli.add_command(fx_group, name="fx")
