"""Receipt lifecycle commands."""

import json

import click

from receiptflow.cli.date_filters import day_bounds
from receiptflow.cli.error_handling import handle_domain_error, parse_field_assignments
from receiptflow.domain.entities import FinalizeResult, PendingStatus
from receiptflow.domain.errors import DomainError
from receiptflow.domain.ledger import rate_text
from receiptflow.utils.date_parser import parse_date


def _echo_result(result: FinalizeResult) -> None:
    if result.record is not None:
        record = result.record
        click.echo(
            f"Receipt {result.receipt_id} finalized: {record.vendor_name} "
            f"{record.total_amount} {record.currency} on {record.transaction_date} ({record.category})"
        )
        if record.was_converted:
            click.echo(
                f"  Converted from {record.original_amount} {record.original_currency} "
                f"@ {rate_text(record.exchange_rate)}"
            )
        if result.destination is not None:
            click.echo(f"  Ledger: {result.destination.name} ({result.destination.sheet_identifier})")
        if result.ledger_error:
            click.echo(f"  Ledger write failed: {result.ledger_error}", err=True)
    elif result.failure is not None:
        click.echo(f"Receipt {result.receipt_id} needs admin review:")
        for error in result.failure.errors:
            click.echo(f"  - {error}")
    else:
        click.echo(f"Receipt {result.receipt_id} is {result.status.value}")

    for warning in result.warnings:
        click.echo(f"  Warning: {warning}")


@click.group()
def receipt_group():
    """Submit, finalize and review receipts."""
    pass


@receipt_group.command("submit")
@click.argument("user_id")
@click.argument("file_name")
@click.option(
    "--payload",
    "payload_file",
    type=click.File("r"),
    required=True,
    help="Extraction JSON file ('-' for stdin)",
)
@click.option("--no-finalize", is_flag=True, help="Keep the receipt pending instead of finalizing it")
@click.pass_context
def submit_receipt(ctx, user_id: str, file_name: str, payload_file, no_finalize: bool):
    """Submit an extraction result for a receipt image.

    Examples:
        receiptflow receipt submit alice lunch.jpg --payload extraction.json
        cat extraction.json | receiptflow receipt submit alice lunch.jpg --payload -
    """
    services = ctx.obj["services"]

    try:
        payload = json.load(payload_file)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Payload is not valid JSON: {e}", err=True)
        ctx.exit(1)

    # This command is the upload front end, so it owns the pending count
    services.stats.increment_pending(user_id)
    try:
        result = services.engine.submit_extraction(user_id, file_name, payload, auto_finalize=not no_finalize)
    except DomainError as e:
        services.stats.decrement_pending(user_id)
        handle_domain_error(ctx, e)
    _echo_result(result)


@receipt_group.command("finalize")
@click.argument("receipt_id", type=int)
@click.option("--set", "assignments", multiple=True, help="Correction as field=value (e.g. totalAmount=75.00)")
@click.option("--user", "user_id", help="Acting user (defaults to the receipt's owner)")
@click.pass_context
def finalize_receipt(ctx, receipt_id: int, assignments: tuple[str, ...], user_id: str | None):
    """Finalize a receipt, optionally with corrections.

    Examples:
        receiptflow receipt finalize 3
        receiptflow receipt finalize 3 --set totalAmount=75.00 --set category=Supplies
    """
    engine = ctx.obj["services"].engine
    corrections = parse_field_assignments(ctx, assignments)

    try:
        result = engine.finalize(receipt_id, corrections or None, user_id=user_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    _echo_result(result)


@receipt_group.command("approve")
@click.argument("receipt_id", type=int)
@click.option("--admin", "admin_id", required=True, help="Approving administrator")
@click.option("--set", "assignments", multiple=True, help="Correction as field=value")
@click.option("--notes", help="Approval notes")
@click.pass_context
def approve_receipt(ctx, receipt_id: int, admin_id: str, assignments: tuple[str, ...], notes: str | None):
    """Approve a receipt awaiting admin review, overriding validation errors."""
    engine = ctx.obj["services"].engine
    corrections = parse_field_assignments(ctx, assignments)

    try:
        result = engine.admin_approve(receipt_id, corrections or None, admin_id=admin_id, notes=notes)
    except DomainError as e:
        handle_domain_error(ctx, e)
    _echo_result(result)


@receipt_group.command("reject")
@click.argument("receipt_id", type=int)
@click.option("--admin", "admin_id", required=True, help="Rejecting administrator")
@click.option("--reason", required=True, help="Reason for rejection")
@click.pass_context
def reject_receipt(ctx, receipt_id: int, admin_id: str, reason: str):
    """Reject a receipt."""
    engine = ctx.obj["services"].engine

    try:
        engine.admin_reject(receipt_id, reason, admin_id=admin_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Receipt {receipt_id} rejected")


@receipt_group.command("pending")
@click.option("--user", "user_id", help="Only show this user's receipts")
@click.option("--all", "include_pending", is_flag=True, help="Include receipts not yet sent to review")
@click.pass_context
def list_pending(ctx, user_id: str | None, include_pending: bool):
    """List receipts awaiting admin review."""
    engine = ctx.obj["services"].engine
    statuses = [PendingStatus.NEEDS_ADMIN_REVIEW]
    if include_pending:
        statuses.insert(0, PendingStatus.PENDING)

    receipts = engine.list_pending_review(user_id=user_id, statuses=statuses)
    if not receipts:
        click.echo("No receipts awaiting review.")
        return

    click.echo(f"\n{'ID':<6} {'User':<16} {'Status':<20} {'File':<30} Errors")
    click.echo("-" * 90)
    for pending in receipts:
        errors = "; ".join(pending.validation_errors)
        click.echo(
            f"{pending.id:<6} {pending.user_id:<16} {pending.status.value:<20} "
            f"{pending.file_name[:30]:<30} {errors}"
        )


@receipt_group.command("list")
@click.option("--user", "user_id", help="Only show this user's receipts")
@click.pass_context
def list_finalized(ctx, user_id: str | None):
    """List finalized receipts, newest first."""
    engine = ctx.obj["services"].engine

    receipts = engine.list_finalized(user_id=user_id)
    if not receipts:
        click.echo("No finalized receipts found.")
        return

    click.echo(f"\n{'ID':<6} {'Date':<12} {'Vendor':<25} {'Amount':>12} {'Category':<18} Ledger")
    click.echo("-" * 95)
    for stored in receipts:
        record = stored.record
        ledger = stored.sheet_identifier + (" (write failed)" if record.has_errors else "")
        click.echo(
            f"{stored.pending_receipt_id:<6} {record.transaction_date!s:<12} {record.vendor_name[:25]:<25} "
            f"{record.total_amount:>8} {record.currency:<3} {record.category[:18]:<18} {ledger}"
        )


@receipt_group.command("show")
@click.argument("receipt_id", type=int)
@click.pass_context
def show_receipt(ctx, receipt_id: int):
    """Show a receipt with its extraction, corrections and outcome."""
    engine = ctx.obj["services"].engine

    try:
        pending = engine.get_pending_receipt(receipt_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Receipt {pending.id}: {pending.file_name}")
    click.echo(f"  User: {pending.user_id}")
    click.echo(f"  Status: {pending.status.value}")
    click.echo(f"  Uploaded: {pending.created_at:%Y-%m-%d %H:%M:%S}")
    if pending.extraction is None:
        click.echo("  Extraction: unreadable")
    else:
        extraction = pending.extraction
        click.echo(f"  Vendor: {extraction.vendor_name or '-'}")
        click.echo(f"  Date: {extraction.transaction_date or '-'}")
        click.echo(f"  Total: {extraction.total_amount} {extraction.currency or ''}".rstrip())
        click.echo(f"  Category: {extraction.category or '-'}")
    for key, value in pending.corrections.items():
        click.echo(f"  Correction {key}: {value}")
    for error in pending.validation_errors:
        click.echo(f"  Error: {error}")
    for warning in pending.validation_warnings:
        click.echo(f"  Warning: {warning}")
    if pending.rejection_reason:
        click.echo(f"  Rejected by {pending.resolved_by}: {pending.rejection_reason}")

    stored = engine.get_finalized_receipt(receipt_id)
    if stored is not None:
        record = stored.record
        click.echo(
            f"  Finalized: {record.total_amount} {record.currency} "
            f"({record.validation_status.value}, by {record.processed_by.value})"
        )
        click.echo(f"  Ledger: {stored.sheet_identifier}{' (write failed)' if record.has_errors else ''}")


@receipt_group.command("archive")
@click.option("--before", "before", required=True, help="Archive receipts created before this date (e.g. 2024-01-01)")
@click.option("--admin", "admin_id", required=True, help="Archiving administrator")
@click.option("--dry-run", is_flag=True, help="Only show what would be archived")
@click.pass_context
def archive_receipts(ctx, before: str, admin_id: str, dry_run: bool):
    """Archive approved and rejected receipts created before a date.

    Open receipts are never archived.

    Examples:
        receiptflow receipt archive --before 2024-01-01 --admin ops --dry-run
        receiptflow receipt archive --before "last year" --admin ops
    """
    engine = ctx.obj["services"].engine
    try:
        cutoff, _ = day_bounds(parse_date(before), None)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)

    try:
        summary = engine.archive_before(cutoff, admin_id=admin_id, dry_run=dry_run)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if summary.dry_run:
        click.echo(f"Dry run: would archive {summary.count} receipts created before {cutoff:%Y-%m-%d}")
    else:
        click.echo(f"Archived {summary.count} receipts created before {cutoff:%Y-%m-%d}")
    if summary.receipt_ids:
        click.echo(f"  Receipts: {', '.join(str(receipt_id) for receipt_id in summary.receipt_ids)}")


def register_commands(cli):
    """Register receipt commands with main CLI."""
    cli.add_command(receipt_group, name="receipt")
