"""User statistics command."""

import click


@click.command("stats")
@click.argument("user_id")
@click.pass_context
def stats(ctx, user_id: str):
    """Show a user's receipt counters."""
    user_stats = ctx.obj["services"].stats.get_stats(user_id)

    click.echo(f"Stats for {user_id}:")
    click.echo(f"  Finalized receipts: {user_stats.total_receipts}")
    click.echo(f"  Total amount: {user_stats.total_amount}")
    click.echo(f"  Pending receipts: {user_stats.pending_receipts}")
    if user_stats.last_receipt_processed:
        click.echo(f"  Last receipt: {user_stats.last_receipt_processed}")
    if user_stats.last_updated:
        click.echo(f"  Last updated: {user_stats.last_updated:%Y-%m-%d %H:%M:%S}")


def register_commands(cli):
    """Register stats command with main CLI."""
    cli.add_command(stats)
