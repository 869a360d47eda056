"""Tests for the receiptflow command line."""

import json

import pytest

from receiptflow.cli.main import cli


@pytest.fixture
def invoke(cli_runner, temp_db, tmp_path, rate_provider, ledger_sink, monkeypatch):
    """Run the CLI against the temporary database with fake collaborators."""
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("BASE_CURRENCY", raising=False)
    monkeypatch.delenv("LEGACY_SHEET_ID", raising=False)

    def _invoke(*args):
        return cli_runner.invoke(
            cli,
            ["--db-path", temp_db.database_path, "--ledger-root", str(tmp_path / "ledgers"), *args],
            obj={"rate_provider": rate_provider, "ledger_sink": ledger_sink},
        )

    return _invoke


@pytest.fixture
def payload_file(tmp_path, receipt_payload):
    """Write an extraction payload to a JSON file and return its path."""

    def _write(name="extraction.json", **overrides):
        path = tmp_path / name
        path.write_text(json.dumps(receipt_payload(**overrides)))
        return str(path)

    return _write


def test_help_without_command(cli_runner):
    """Test that the group shows help without touching the database."""
    result = cli_runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "receipt" in result.output
    assert "sheet" in result.output


def test_submit_finalizes_receipt(invoke, payload_file, ledger_sink):
    """Test that a valid payload is finalized and written to the ledger."""
    result = invoke("receipt", "submit", "alice", "lunch.jpg", "--payload", payload_file())

    assert result.exit_code == 0
    assert "Receipt 1 finalized: Corner Hardware 42.50 GBP on 2024-06-10 (Maintenance)" in result.output
    assert "Ledger: Legacy destination (legacy-ledger)" in result.output
    assert len(ledger_sink.rows_for("Sheet1")) == 1
    assert len(ledger_sink.rows_for("Accountant_CSV_Ready")) == 1


def test_submit_converts_foreign_currency(invoke, payload_file):
    """Test that a USD receipt is converted to the base currency."""
    result = invoke(
        "receipt", "submit", "alice", "nyc.jpg", "--payload", payload_file(currency="USD", totalAmount="100.00")
    )

    assert result.exit_code == 0
    assert "79.00 GBP" in result.output
    assert "Converted from 100.00 USD @ 0.79" in result.output


def test_submit_invalid_receipt_goes_to_review(invoke, payload_file):
    """Test that a receipt failing validation is parked for admin review."""
    result = invoke("receipt", "submit", "alice", "blurry.jpg", "--payload", payload_file(vendorName=None))

    assert result.exit_code == 0
    assert "Receipt 1 needs admin review:" in result.output
    assert "  - Vendor name is required" in result.output

    result = invoke("receipt", "pending")
    assert result.exit_code == 0
    assert "blurry.jpg" in result.output
    assert "needs_admin_review" in result.output

    result = invoke("stats", "alice")
    assert "Pending receipts: 1" in result.output
    assert "Finalized receipts: 0" in result.output


def test_submit_without_total_fails(invoke, payload_file):
    """Test that a payload without a total is refused and not counted."""
    result = invoke("receipt", "submit", "alice", "a.jpg", "--payload", payload_file(totalAmount=None))

    assert result.exit_code == 1
    assert "Error: Extraction payload has no totalAmount" in result.output

    result = invoke("stats", "alice")
    assert "Pending receipts: 0" in result.output


def test_submit_rejects_malformed_json(invoke, tmp_path):
    """Test that a payload file that is not JSON is reported."""
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    result = invoke("receipt", "submit", "alice", "a.jpg", "--payload", str(path))

    assert result.exit_code == 1
    assert "Payload is not valid JSON" in result.output


def test_finalize_with_corrections(invoke, payload_file):
    """Test that a user correction clears the review blocker."""
    invoke("receipt", "submit", "alice", "blurry.jpg", "--payload", payload_file(vendorName=None))

    result = invoke("receipt", "finalize", "1", "--set", "vendorName=Corner Hardware")

    assert result.exit_code == 0
    assert "Receipt 1 finalized" in result.output

    result = invoke("stats", "alice")
    assert "Finalized receipts: 1" in result.output
    assert "Total amount: 42.50" in result.output
    assert "Pending receipts: 0" in result.output


def test_finalize_twice_conflicts(invoke, payload_file):
    """Test that a finalized receipt cannot be finalized again."""
    invoke("receipt", "submit", "alice", "a.jpg", "--payload", payload_file())

    result = invoke("receipt", "finalize", "1")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_finalize_rejects_bad_assignment(invoke, payload_file):
    """Test that --set needs field=value."""
    invoke("receipt", "submit", "alice", "a.jpg", "--payload", payload_file(), "--no-finalize")

    result = invoke("receipt", "finalize", "1", "--set", "vendorName")

    assert result.exit_code == 1
    assert "Expected field=value" in result.output


def test_finalize_unknown_receipt(invoke):
    """Test that a missing receipt is reported."""
    result = invoke("receipt", "finalize", "99")

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "99" in result.output


def test_reject_and_show(invoke, payload_file):
    """Test that a rejected receipt shows its reason."""
    invoke("receipt", "submit", "alice", "blurry.jpg", "--payload", payload_file(vendorName=None))

    result = invoke("receipt", "reject", "1", "--admin", "root", "--reason", "Unreadable photo")
    assert result.exit_code == 0
    assert "Receipt 1 rejected" in result.output

    result = invoke("receipt", "show", "1")
    assert result.exit_code == 0
    assert "Status: rejected" in result.output
    assert "Rejected by root: Unreadable photo" in result.output

    result = invoke("receipt", "pending")
    assert "No receipts awaiting review." in result.output


def test_approve_overrides_warnings_and_errors(invoke, payload_file):
    """Test that an admin can approve a receipt with a non-blocking error."""
    invoke("receipt", "submit", "alice", "odd.jpg", "--payload", payload_file(category="Snacks"))

    result = invoke("receipt", "approve", "1", "--admin", "root", "--notes", "Treat as supplies")

    assert result.exit_code == 0
    assert "Receipt 1 finalized" in result.output

    result = invoke("receipt", "show", "1")
    assert "admin_override, by admin" in result.output


def test_receipt_list(invoke, payload_file):
    """Test listing finalized receipts."""
    result = invoke("receipt", "list")
    assert "No finalized receipts found." in result.output

    invoke("receipt", "submit", "alice", "a.jpg", "--payload", payload_file())
    result = invoke("receipt", "list", "--user", "alice")

    assert result.exit_code == 0
    assert "Corner Hardware" in result.output
    assert "legacy-ledger" in result.output


def test_sheet_routing_commands(invoke):
    """Test creating a config, assigning a user and resolving."""
    result = invoke("sheet", "create", "Acme Ltd", "acme-ledger")
    assert result.exit_code == 0
    assert "Created sheet config 'Acme Ltd' (ID: 1)" in result.output

    result = invoke("sheet", "resolve", "alice")
    assert "User 'alice' -> legacy-ledger (legacy fallback)" in result.output

    result = invoke("sheet", "assign-user", "1", "alice")
    assert result.exit_code == 0

    result = invoke("sheet", "resolve", "alice")
    assert "User 'alice' -> acme-ledger (config 1)" in result.output

    result = invoke("sheet", "show", "1")
    assert result.exit_code == 0
    assert "Users: alice" in result.output

    result = invoke("sheet", "list")
    assert "Acme Ltd" in result.output


def test_sheet_create_rejects_bad_identifier(invoke):
    """Test that sheet identifiers are validated."""
    result = invoke("sheet", "create", "Acme", "acme ledger!")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_sheet_deactivate_falls_back(invoke):
    """Test that a deactivated default no longer routes."""
    invoke("sheet", "create", "Shared", "shared-ledger", "--default")
    assert "shared-ledger (config 1)" in invoke("sheet", "resolve", "bob").output

    result = invoke("sheet", "deactivate", "1")
    assert result.exit_code == 0

    assert "legacy-ledger (legacy fallback)" in invoke("sheet", "resolve", "bob").output
    assert "No sheet configs found." in invoke("sheet", "list").output
    assert "inactive" in invoke("sheet", "list", "--all").output


def test_sheet_health(invoke, ledger_sink):
    """Test that an unhealthy sheet exits with failure."""
    invoke("sheet", "create", "Acme", "acme-ledger")

    result = invoke("sheet", "health", "1")
    assert result.exit_code == 0
    assert "Sheet config 1 is healthy" in result.output

    ledger_sink.fail_tabs.add("Sheet1")
    result = invoke("sheet", "health", "1")
    assert result.exit_code == 1
    assert "unhealthy: Missing tabs: Sheet1" in result.output


def test_entity_commands_route_members(invoke):
    """Test that entity members follow the entity's sheet config."""
    assert "No entities found." in invoke("entity", "list").output

    result = invoke("entity", "create", "acme", "Acme Ltd")
    assert "Created entity 'Acme Ltd' (ID: acme)" in result.output

    invoke("entity", "add-user", "acme", "alice")
    invoke("sheet", "create", "Acme", "acme-ledger")
    invoke("sheet", "assign-entity", "1", "acme")

    assert "acme-ledger (config 1)" in invoke("sheet", "resolve", "alice").output


def test_entity_add_user_unknown_entity(invoke):
    """Test adding a user to a missing entity."""
    result = invoke("entity", "add-user", "missing", "alice")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_category_commands(invoke):
    """Test seeding, adding, listing and removing categories."""
    result = invoke("category", "list")
    assert "No categories found" in result.output

    result = invoke("init-categories")
    assert "Successfully created 5 categories (0 already existed)." in result.output
    assert "Categories already exist." in invoke("init-categories").output

    result = invoke("category", "add", "Travel", "--description", "Trains and taxis")
    assert result.exit_code == 0
    assert "Created category 'Travel'" in result.output

    result = invoke("category", "list")
    assert "Travel (ID: 6) - Trains and taxis" in result.output

    assert invoke("category", "remove", "Travel").exit_code == 0
    assert invoke("category", "remove", "Travel").exit_code == 1


def test_logs_command(invoke, payload_file):
    """Test filtering the audit log."""
    invoke("receipt", "submit", "alice", "a.jpg", "--payload", payload_file(totalAmount=None))

    result = invoke("logs", "--severity", "error")
    assert result.exit_code == 0
    assert "submit_extraction" in result.output
    assert "user=alice" in result.output

    result = invoke("logs", "--user", "bob")
    assert "No log entries found." in result.output


def test_logs_rejects_two_periods(invoke):
    """Test that only one period flag is accepted."""
    result = invoke("logs", "--this-week", "--last-month")

    assert result.exit_code == 1
    assert "Only one period option" in result.output


def test_fx_rate(invoke, rate_provider):
    """Test showing a rate and a missing rate."""
    result = invoke("fx", "rate", "usd", "gbp")
    assert result.exit_code == 0
    assert "1 USD = 0.79 GBP" in result.output

    rate_provider.fail = True
    result = invoke("fx", "rate", "JPY", "GBP")
    assert result.exit_code == 1
    assert "No rate available for JPY->GBP" in result.output


def test_receipt_archive(invoke, payload_file):
    """Test that archive previews, then moves resolved receipts out of view."""
    invoke("receipt", "submit", "alice", "lunch.jpg", "--payload", payload_file())
    invoke("receipt", "submit", "alice", "later.jpg", "--payload", payload_file(vendorName=None), "--no-finalize")

    preview = invoke("receipt", "archive", "--before", "2999-01-01", "--admin", "ops", "--dry-run")
    assert preview.exit_code == 0
    assert "Dry run: would archive 1 receipts created before 2999-01-01" in preview.output
    assert "  Receipts: 1" in preview.output

    result = invoke("receipt", "archive", "--before", "2999-01-01", "--admin", "ops")
    assert result.exit_code == 0
    assert "Archived 1 receipts" in result.output

    assert "not found" in invoke("receipt", "show", "1").output
    assert invoke("receipt", "show", "2").exit_code == 0


def test_receipt_archive_bad_date(invoke):
    result = invoke("receipt", "archive", "--before", "someday", "--admin", "ops")

    assert result.exit_code == 1
    assert "Invalid date" in result.output
