"""Tests for receipt validation rules."""

from datetime import date
from decimal import Decimal

import pytest

from receiptflow.domain.entities import RawExtraction, ValidationStatus, VatBreakdown
from receiptflow.domain.validation import check_vat_number, validate_receipt

TODAY = date(2024, 6, 15)
CATEGORIES = frozenset({"Maintenance", "Supplies", "Other"})


def _candidate(**overrides):
    values = {
        "vendor_name": "Corner Hardware",
        "transaction_date": date(2024, 6, 1),
        "total_amount": Decimal("42.50"),
        "category": "Maintenance",
        "currency": "GBP",
        "original_currency": "GBP",
        "original_amount": Decimal("42.50"),
        "exchange_rate": Decimal("1"),
    }
    values.update(overrides)
    return RawExtraction(**values)


def _validate(**overrides):
    return validate_receipt(_candidate(**overrides), today=TODAY, categories=CATEGORIES)


def test_valid_receipt_passes():
    result = _validate()

    assert result.status == ValidationStatus.PASSED
    assert result.is_valid
    assert result.errors == ()
    assert result.warnings == ()


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"vendor_name": None}, "Vendor name is required"),
        ({"vendor_name": "X"}, "at least 2"),
        ({"vendor_name": "V" * 101}, "at most 100"),
        ({"transaction_date": None}, "Transaction date is required"),
        ({"transaction_date": date(2024, 6, 16)}, "in the future"),
        ({"total_amount": Decimal("0"), "original_amount": Decimal("0")}, "greater than zero"),
        ({"category": " "}, "Category is required"),
        ({"category": "Groceries"}, "not recognised"),
        ({"currency": "POUNDS"}, "3-letter"),
        ({"exchange_rate": Decimal("0")}, "Exchange rate must be greater than zero"),
    ],
)
def test_errors_fail_validation(overrides, message):
    result = _validate(**overrides)

    assert result.status == ValidationStatus.FAILED
    assert not result.is_valid
    assert any(message in error for error in result.errors)


def test_today_is_not_in_the_future():
    assert _validate(transaction_date=TODAY).is_valid


def test_amount_invariant_violation_fails():
    result = _validate(
        total_amount=Decimal("80.00"),
        original_currency="USD",
        original_amount=Decimal("100"),
        exchange_rate=Decimal("0.79"),
    )

    assert result.status == ValidationStatus.FAILED
    assert "does not match original amount" in result.errors[0]


def test_amount_invariant_within_tolerance_passes():
    result = _validate(
        total_amount=Decimal("16.99"),
        original_currency="EUR",
        original_amount=Decimal("19.99"),
        exchange_rate=Decimal("0.85"),
    )

    assert result.is_valid


def test_no_category_registry_accepts_any_category():
    result = validate_receipt(_candidate(category="Groceries"), today=TODAY)

    assert result.is_valid


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"transaction_date": date(2013, 1, 1)}, "more than 10 years old"),
        ({"total_amount": Decimal("150000"), "original_amount": Decimal("150000")}, "unusually large"),
        ({"supplier_vat_number": "GB12345"}, "does not match GB format"),
        ({"supplier_vat_number": "XX123456789"}, "unknown country code"),
    ],
)
def test_warnings_do_not_fail(overrides, message):
    result = _validate(**overrides)

    assert result.status == ValidationStatus.WARNING
    assert result.is_valid
    assert any(message in warning for warning in result.warnings)


def test_vat_breakdown_sum_mismatch_warns():
    result = _validate(
        vat_breakdown=VatBreakdown(subtotal=Decimal("30.00"), vat_amount=Decimal("6.00"), vat_rate=Decimal("20"))
    )

    assert result.status == ValidationStatus.WARNING
    assert "does not add up" in result.warnings[0]


def test_vat_breakdown_rate_mismatch_warns():
    result = _validate(
        vat_breakdown=VatBreakdown(subtotal=Decimal("35.00"), vat_amount=Decimal("7.50"), vat_rate=Decimal("5"))
    )

    assert any("does not match 5% of subtotal" in warning for warning in result.warnings)


def test_consistent_vat_breakdown_passes():
    result = _validate(
        vat_breakdown=VatBreakdown(
            subtotal=Decimal("35.42"), vat_amount=Decimal("7.08"), vat_rate=Decimal("20")
        )
    )

    assert result.status == ValidationStatus.PASSED


def test_vat_breakdown_checked_against_original_amount():
    """The breakdown is in the receipt's own currency, not the converted total."""
    result = _validate(
        total_amount=Decimal("79.00"),
        original_currency="USD",
        original_amount=Decimal("100.00"),
        exchange_rate=Decimal("0.79"),
        vat_breakdown=VatBreakdown(subtotal=Decimal("83.33"), vat_amount=Decimal("16.67")),
    )

    assert result.status == ValidationStatus.PASSED


@pytest.mark.parametrize(
    "vat_number",
    ["GB123456789", "gb 123 4567 89", "DE123456789", "NL123456789B01", "FRXX123456789", "CHE123456789MWST"],
)
def test_well_formed_vat_numbers(vat_number):
    assert check_vat_number(vat_number) is None
