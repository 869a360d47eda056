"""Main CLI entry point."""

from dataclasses import replace

import click

from receiptflow.config import load_settings
from receiptflow.database.factories import create_sqlite_database
from receiptflow.services import build_services
from receiptflow.utils.logging import configure_logging

# Import and register all commands at module level
from receiptflow.cli.commands import (
    receipt,
    sheet,
    entity,
    category,
    init_categories,
    logs,
    stats,
    fx,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides RECEIPTFLOW_DB_PATH environment variable)",
    envvar="RECEIPTFLOW_DB_PATH",
)
@click.option(
    "--ledger-root",
    type=click.Path(file_okay=False),
    help="Directory holding the CSV ledgers (overrides LEDGER_ROOT environment variable)",
    envvar="LEDGER_ROOT",
)
@click.pass_context
def cli(ctx, db_path: str | None, ledger_root: str | None):
    """Receiptflow - receipt lifecycle and reconciliation.

    Takes extracted receipt data through validation, currency conversion and
    admin review, and writes finalized receipts to per-entity ledgers.
    """
    ctx.ensure_object(dict)

    # Initialize services only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is None:
        return

    try:
        settings = load_settings()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    if db_path:
        settings = replace(settings, database_path=db_path)
    if ledger_root:
        settings = replace(settings, ledger_root=ledger_root)
    configure_logging(settings.log_level)

    db = create_sqlite_database(database_path=settings.database_path)
    db.connect()
    db.initialize_schema()

    # Tests may inject their own rate provider and ledger sink through ctx.obj
    services = build_services(
        db,
        settings,
        rate_provider=ctx.obj.get("rate_provider"),
        ledger_sink=ctx.obj.get("ledger_sink"),
    )
    ctx.obj["db"] = db
    ctx.obj["services"] = services
    ctx.call_on_close(services.close)


# Register all commands
receipt.register_commands(cli)
sheet.register_commands(cli)
entity.register_commands(cli)
category.register_commands(cli)
init_categories.register_commands(cli)
logs.register_commands(cli)
stats.register_commands(cli)
fx.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
