"""CLI helpers for date range options."""

from datetime import date, datetime, time
from typing import Optional

import click

from receiptflow.utils.date_parser import PERIODS, get_date_range, parse_date


def period_options(command):
    """Add the --this-week ... --last-year flags to a command."""
    for period in reversed(PERIODS):
        command = click.option(
            f"--{period}",
            period.replace("-", "_"),
            is_flag=True,
            help=f"Limit to {period.replace('-', ' ')}",
        )(command)
    return command


def _selected_period(ctx: click.Context, period_flags: dict[str, bool]) -> Optional[str]:
    chosen = [period for period, is_set in period_flags.items() if is_set]
    if len(chosen) > 1:
        flags = ", ".join(f"--{period}" for period in PERIODS)
        click.echo(f"Error: Only one period option ({flags}) can be specified at a time.", err=True)
        ctx.exit(1)
    return chosen[0] if chosen else None


def _parse_bound(ctx: click.Context, label: str, value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label} date: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx: click.Context,
    *,
    start_date: Optional[str],
    end_date: Optional[str],
    period_flags: dict[str, bool],
) -> tuple[Optional[date], Optional[date]]:
    """Resolve a date range from one period flag or explicit --start-date/--end-date.

    Either bound may be left open. Errors are reported and exit with status 1.
    """
    period = _selected_period(ctx, period_flags)
    if period is not None:
        if start_date or end_date:
            click.echo(
                "Error: Period options (--this-month, --last-week, etc.) cannot be combined "
                "with --start-date or --end-date.",
                err=True,
            )
            ctx.exit(1)
        return get_date_range(period)

    start = _parse_bound(ctx, "start", start_date)
    end = _parse_bound(ctx, "end", end_date)
    if start and end and start > end:
        click.echo(f"Error: Start date {start} is after end date {end}.", err=True)
        ctx.exit(1)
    return start, end


def day_bounds(
    start: Optional[date], end: Optional[date]
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Widen a date range to timestamps covering the whole first and last day."""
    return (
        datetime.combine(start, time.min) if start else None,
        datetime.combine(end, time.max) if end else None,
    )
