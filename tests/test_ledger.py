"""Tests for ledger row layouts and the guarded writer."""

import threading
import time
from datetime import date, datetime
from decimal import Decimal

from receiptflow.domain.entities import (
    CanonicalReceiptRecord,
    LogFilter,
    ProcessedBy,
    Severity,
    SheetConfig,
    SheetTabs,
    ValidationStatus,
    VatBreakdown,
)
from receiptflow.domain.errors import LedgerTimeoutError
from receiptflow.domain.ledger import (
    LedgerSink,
    LedgerWriter,
    accountant_row,
    destinations_for,
    main_row,
    rate_text,
)


def _record(**overrides):
    values = {
        "vendor_name": "Hotel Lux",
        "transaction_date": date(2024, 5, 2),
        "total_amount": Decimal("79.00"),
        "category": "Other",
        "currency": "GBP",
        "original_currency": "USD",
        "original_amount": Decimal("100.00"),
        "exchange_rate": Decimal("0.79000000"),
        "timestamp": datetime(2024, 5, 3, 9, 30, 0),
        "entity": "Acme Ltd",
        "processed_by": ProcessedBy.USER,
        "validation_status": ValidationStatus.PASSED,
    }
    values.update(overrides)
    return CanonicalReceiptRecord(**values)


def test_main_row():
    row = main_row(
        _record(
            supplier_vat_number="GB123456789",
            vat_breakdown=VatBreakdown(subtotal=Decimal("83.33"), vat_amount=Decimal("16.67"), vat_rate=Decimal("20")),
        )
    )

    assert row["Vendor Name"] == "Hotel Lux"
    assert row["Date"] == "2024-05-02"
    assert row["Total Amount"] == "79.00"
    assert row["Timestamp"] == "2024-05-03T09:30:00"
    assert row["Original Currency"] == "USD"
    assert row["Exchange Rate"] == "0.79"
    assert row["VAT Subtotal"] == "83.33"
    assert row["Processed By"] == "user"
    assert row["Validation Status"] == "passed"
    assert row["Has Errors"] == "NO"


def test_main_row_blank_optional_fields():
    row = main_row(_record(has_errors=True))

    assert row["Supplier VAT Number"] == ""
    assert row["VAT Amount"] == ""
    assert row["Has Errors"] == "YES"


def test_accountant_row_notes():
    row = accountant_row(
        _record(vat_breakdown=VatBreakdown(subtotal=Decimal("83.33"), vat_rate=Decimal("20")))
    )

    assert row["Amount"] == "79.00"
    assert row["Currency"] == "GBP"
    assert row["Entity"] == "Acme Ltd"
    assert row["Notes"] == "Converted from 100.00 USD @ 0.79 | Subtotal: 83.33 | VAT Rate: 20%"


def test_accountant_row_without_conversion_has_no_notes():
    row = accountant_row(
        _record(original_currency="GBP", original_amount=Decimal("79.00"), exchange_rate=Decimal("1"))
    )

    assert row["Notes"] == ""


def test_rate_text_never_uses_exponent():
    assert rate_text(Decimal("100.000")) == "100"
    assert rate_text(Decimal("0.00001230")) == "0.0000123"


def test_destinations_follow_config_tabs():
    config = SheetConfig(
        id=1,
        name="Acme",
        sheet_identifier="acme",
        tabs=SheetTabs(main_tab_name="Main", accountant_tab_name="Books", create_tabs_if_missing=False),
    )

    main, accountant = destinations_for(config)

    assert (main.sheet_identifier, main.tab_name, main.create_if_missing) == ("acme", "Main", False)
    assert accountant.tab_name == "Books"


def test_writer_writes_both_tabs(ledger_sink, audit):
    writer = LedgerWriter(ledger_sink, audit, timeout_seconds=5)
    config = SheetConfig(id=1, name="Acme", sheet_identifier="acme")

    assert writer.write(config, _record()) is None

    assert len(ledger_sink.rows_for("Sheet1")) == 1
    assert len(ledger_sink.rows_for("Accountant_CSV_Ready")) == 1


def test_writer_reports_unexpected_sink_errors(audit):
    class BrokenSink(LedgerSink):
        def append_row(self, destination, row):
            raise ConnectionError("connection reset")

        def check_health(self, sheet_identifier, tab_names):
            raise ConnectionError("connection reset")

    writer = LedgerWriter(BrokenSink(), audit, timeout_seconds=5)
    config = SheetConfig(id=1, name="Acme", sheet_identifier="acme")

    error = str(writer.write(config, _record()))
    health = writer.check_health(config)

    assert "connection reset" in error
    assert not health.is_healthy
    assert "connection reset" in health.error_message


class SlowSink(LedgerSink):
    """Sink whose first ``stuck_calls`` calls block until released, then still write."""

    def __init__(self, stuck_calls=1):
        self.stuck_calls = stuck_calls
        self.release = threading.Event()
        self.rows = []
        self._lock = threading.Lock()

    def append_row(self, destination, row):
        with self._lock:
            stuck = self.stuck_calls > 0
            self.stuck_calls -= 1
        if stuck:
            self.release.wait(5)
        with self._lock:
            self.rows.append((destination.tab_name, dict(row)))

    def check_health(self, sheet_identifier, tab_names):
        self.release.wait(5)


def test_writer_timeout_reports_unknown_outcome(audit):
    """A timed-out call keeps running, so the row can still land afterwards."""
    sink = SlowSink()
    writer = LedgerWriter(sink, audit, timeout_seconds=0.05)
    config = SheetConfig(id=1, name="Acme", sheet_identifier="acme")

    try:
        error = writer.write(config, _record(), receipt_id=4)
    finally:
        sink.release.set()

    assert isinstance(error, LedgerTimeoutError)
    assert "outcome unknown" in str(error)
    for _ in range(100):
        if sink.rows:
            break
        time.sleep(0.01)
    assert [tab for tab, _ in sink.rows] == ["Sheet1"]
    assert audit.query_logs(LogFilter(severity=Severity.WARNING, receipt_id=4)) == []


def test_writer_health_check_times_out(audit):
    sink = SlowSink()
    writer = LedgerWriter(sink, audit, timeout_seconds=0.05)

    try:
        health = writer.check_health(SheetConfig(id=1, name="Acme", sheet_identifier="acme"))
    finally:
        sink.release.set()

    assert not health.is_healthy
    assert "timed out" in health.error_message


def test_hung_calls_do_not_block_later_writes(audit):
    sink = SlowSink(stuck_calls=6)
    writer = LedgerWriter(sink, audit, timeout_seconds=0.05)
    config = SheetConfig(id=1, name="Acme", sheet_identifier="acme")

    try:
        for _ in range(6):
            assert isinstance(writer.write(config, _record()), LedgerTimeoutError)
        assert writer.write(config, _record()) is None
        assert [tab for tab, _ in sink.rows] == ["Sheet1", "Accountant_CSV_Ready"]
    finally:
        sink.release.set()


def test_writer_accountant_failure_logged_as_warning(ledger_sink, audit):
    ledger_sink.fail_tabs.add("Accountant_CSV_Ready")
    writer = LedgerWriter(ledger_sink, audit, timeout_seconds=5)
    config = SheetConfig(id=1, name="Acme", sheet_identifier="acme")

    assert writer.write(config, _record(), user_id="alice", receipt_id=9) is None

    warnings = audit.query_logs(LogFilter(severity=Severity.WARNING, receipt_id=9))
    assert warnings[0].context["tab"] == "Accountant_CSV_Ready"
    assert warnings[0].context["outcome_unknown"] is False
