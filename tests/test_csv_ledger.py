"""Tests for the CSV file ledger sink."""

import csv

import pytest

from receiptflow.domain.errors import LedgerWriteError
from receiptflow.domain.ledger import LedgerDestination
from receiptflow.integrations.csv_ledger import CsvLedgerSink

HEADERS = ("Date", "Vendor", "Amount")


def _read(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def test_append_creates_tab_with_header(tmp_path):
    sink = CsvLedgerSink(str(tmp_path))
    destination = LedgerDestination("acme", "Sheet1", HEADERS)

    sink.append_row(destination, {"Date": "2024-05-02", "Vendor": "Hotel Lux", "Amount": "79.00"})
    sink.append_row(destination, {"Date": "2024-05-03", "Vendor": "Café, Bar", "Amount": "4.50"})

    assert _read(tmp_path / "acme" / "Sheet1.csv") == [
        list(HEADERS),
        ["2024-05-02", "Hotel Lux", "79.00"],
        ["2024-05-03", "Café, Bar", "4.50"],
    ]


def test_missing_columns_are_blank(tmp_path):
    sink = CsvLedgerSink(str(tmp_path))

    sink.append_row(LedgerDestination("acme", "Sheet1", HEADERS), {"Vendor": "Shop"})

    assert _read(tmp_path / "acme" / "Sheet1.csv")[1] == ["", "Shop", ""]


def test_missing_tab_without_create_fails(tmp_path):
    sink = CsvLedgerSink(str(tmp_path))
    destination = LedgerDestination("acme", "Sheet1", HEADERS, create_if_missing=False)

    with pytest.raises(LedgerWriteError, match="does not exist"):
        sink.append_row(destination, {"Vendor": "Shop"})


def test_check_health(tmp_path):
    sink = CsvLedgerSink(str(tmp_path))

    health = sink.check_health("acme", ["Sheet1", "Accountant_CSV_Ready"])
    assert not health.accessible
    assert "does not exist" in health.error_message

    sink.append_row(LedgerDestination("acme", "Sheet1", HEADERS), {"Vendor": "Shop"})
    health = sink.check_health("acme", ["Sheet1", "Accountant_CSV_Ready"])
    assert health.accessible
    assert not health.tabs_exist
    assert health.error_message == "Missing tabs: Accountant_CSV_Ready"

    sink.append_row(LedgerDestination("acme", "Accountant_CSV_Ready", HEADERS), {"Vendor": "Shop"})
    assert sink.check_health("acme", ["Sheet1", "Accountant_CSV_Ready"]).is_healthy
