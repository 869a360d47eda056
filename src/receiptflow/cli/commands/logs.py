"""Audit log query command."""

import click

from receiptflow.cli.date_filters import day_bounds, period_options, resolve_cli_date_range
from receiptflow.domain.entities import LogFilter, Severity


@click.command("logs")
@click.option(
    "--severity",
    type=click.Choice([severity.value for severity in Severity], case_sensitive=False),
    help="Only entries of this severity",
)
@click.option("--operation", help="Only entries from this operation (e.g. finalize)")
@click.option("--user", "user_id", help="Only entries about this user")
@click.option("--receipt", "receipt_id", type=int, help="Only entries about this receipt")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'yesterday')")
@click.option("--end-date", help="End date (inclusive)")
@period_options
@click.option("--limit", type=click.IntRange(min=1), default=100, show_default=True, help="Maximum entries")
@click.pass_context
def logs(
    ctx,
    severity: str | None,
    operation: str | None,
    user_id: str | None,
    receipt_id: int | None,
    start_date: str | None,
    end_date: str | None,
    this_week: bool,
    last_week: bool,
    this_month: bool,
    last_month: bool,
    this_year: bool,
    last_year: bool,
    limit: int,
):
    """Show audit log entries, newest first.

    Examples:
        receiptflow logs --severity ERROR
        receiptflow logs --user alice --this-week
        receiptflow logs --receipt 12
    """
    audit = ctx.obj["services"].audit

    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-week": this_week,
            "last-week": last_week,
            "this-month": this_month,
            "last-month": last_month,
            "this-year": this_year,
            "last-year": last_year,
        },
    )

    start_at, end_at = day_bounds(start, end)
    filters = LogFilter(
        severity=Severity(severity.upper()) if severity else None,
        operation=operation,
        user_id=user_id,
        receipt_id=receipt_id,
        start=start_at,
        end=end_at,
        limit=limit,
    )
    entries = audit.query_logs(filters)
    if not entries:
        click.echo("No log entries found.")
        return

    for entry in entries:
        subject = []
        if entry.user_id:
            subject.append(f"user={entry.user_id}")
        if entry.receipt_id is not None:
            subject.append(f"receipt={entry.receipt_id}")
        click.echo(
            f"{entry.timestamp:%Y-%m-%d %H:%M:%S} {entry.severity.value:<8} "
            f"{entry.operation:<20} {entry.message}"
            + (f" ({' '.join(subject)})" if subject else "")
        )


def register_commands(cli):
    """Register logs command with main CLI."""
    cli.add_command(logs)
