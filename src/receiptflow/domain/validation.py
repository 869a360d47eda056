"""Validation rules for candidate financial records.

``validate_receipt`` is a pure function of its arguments: no clock reads, no
database access. Errors block finalization, warnings are recorded only.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Collection, Mapping, Optional, Union

from dateutil.relativedelta import relativedelta

from receiptflow.domain.entities import (
    CanonicalReceiptRecord,
    RawExtraction,
    ValidationResult,
    ValidationStatus,
)

AMOUNT_TOLERANCE = Decimal("0.01")
VAT_RATE_TOLERANCE = Decimal("0.01")
LARGE_AMOUNT_THRESHOLD = Decimal("100000")
MAX_RECEIPT_AGE_YEARS = 10
VENDOR_NAME_MIN_LENGTH = 2
VENDOR_NAME_MAX_LENGTH = 100

# Country prefix -> (pattern, human readable format)
VAT_FORMATS: dict[str, tuple[str, str]] = {
    "AT": (r"^ATU\d{8}$", "ATU + 8 digits"),
    "BE": (r"^BE0\d{9}$", "BE0 + 9 digits"),
    "BG": (r"^BG\d{9,10}$", "BG + 9 or 10 digits"),
    "CY": (r"^CY\d{8}[A-Z]$", "CY + 8 digits + 1 letter"),
    "CZ": (r"^CZ\d{8,10}$", "CZ + 8 to 10 digits"),
    "DE": (r"^DE\d{9}$", "DE + 9 digits"),
    "DK": (r"^DK\d{8}$", "DK + 8 digits"),
    "EE": (r"^EE\d{9}$", "EE + 9 digits"),
    "EL": (r"^EL\d{9}$", "EL + 9 digits"),
    "ES": (r"^ES[A-Z0-9]\d{7}[A-Z0-9]$", "ES + letter/digit + 7 digits + letter/digit"),
    "FI": (r"^FI\d{8}$", "FI + 8 digits"),
    "FR": (r"^FR[A-Z0-9]{2}\d{9}$", "FR + 2 letters/digits + 9 digits"),
    "GB": (r"^GB(\d{9}|\d{12}|GD\d{3}|HA\d{3})$", "GB + 9 or 12 digits (or GD/HA + 3 digits)"),
    "HR": (r"^HR\d{11}$", "HR + 11 digits"),
    "HU": (r"^HU\d{8}$", "HU + 8 digits"),
    "IE": (r"^IE\d[A-Z0-9]\d{5}[A-Z]$", "IE + digit + letter/digit + 5 digits + letter"),
    "IT": (r"^IT\d{11}$", "IT + 11 digits"),
    "LT": (r"^LT(\d{9}|\d{12})$", "LT + 9 or 12 digits"),
    "LU": (r"^LU\d{8}$", "LU + 8 digits"),
    "LV": (r"^LV\d{11}$", "LV + 11 digits"),
    "MT": (r"^MT\d{8}$", "MT + 8 digits"),
    "NL": (r"^NL\d{9}B\d{2}$", "NL + 9 digits + B + 2 digits"),
    "PL": (r"^PL\d{10}$", "PL + 10 digits"),
    "PT": (r"^PT\d{9}$", "PT + 9 digits"),
    "RO": (r"^RO\d{2,10}$", "RO + 2 to 10 digits"),
    "SE": (r"^SE\d{12}$", "SE + 12 digits"),
    "SI": (r"^SI\d{8}$", "SI + 8 digits"),
    "SK": (r"^SK\d{10}$", "SK + 10 digits"),
    "CH": (r"^CHE\d{9}(MWST|TVA|IVA)$", "CHE + 9 digits + MWST/TVA/IVA"),
    "NO": (r"^NO\d{9}MVA$", "NO + 9 digits + MVA"),
}

VAT_PATTERNS: dict[str, re.Pattern] = {
    country: re.compile(pattern) for country, (pattern, _) in VAT_FORMATS.items()
}

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")

Candidate = Union[RawExtraction, CanonicalReceiptRecord]


def normalize_vat_number(vat_number: str) -> str:
    """Strip spaces and upper-case a VAT number."""
    return re.sub(r"\s+", "", vat_number).upper()


def check_vat_number(
    vat_number: str, vat_patterns: Mapping[str, re.Pattern] = VAT_PATTERNS
) -> Optional[str]:
    """Return a warning message for a malformed VAT number, or None if it looks valid."""
    normalized = normalize_vat_number(vat_number)
    country = normalized[:2]
    pattern = vat_patterns.get(country)
    if pattern is None:
        return f"VAT number '{vat_number}' has unknown country code '{country}'"
    if not pattern.match(normalized):
        expected = VAT_FORMATS[country][1] if country in VAT_FORMATS else pattern.pattern
        return f"VAT number '{vat_number}' does not match {country} format ({expected})"
    return None


def amount_invariant_errors(candidate: Candidate) -> list[str]:
    """Return violations of the amount/rate invariants.

    These are the only rule failures an administrator cannot override.
    """
    errors = []
    rate = candidate.exchange_rate
    if rate is None:
        return errors
    if rate <= 0:
        errors.append("Exchange rate must be greater than zero")
        return errors
    if candidate.original_amount is not None and candidate.total_amount is not None:
        expected = candidate.original_amount * rate
        if abs(expected - candidate.total_amount) > AMOUNT_TOLERANCE:
            errors.append(
                f"Total amount {candidate.total_amount} does not match original amount "
                f"{candidate.original_amount} x exchange rate {rate}"
            )
    return errors


def validate_receipt(
    candidate: Candidate,
    *,
    today: date,
    categories: Optional[Collection[str]] = None,
    vat_patterns: Mapping[str, re.Pattern] = VAT_PATTERNS,
) -> ValidationResult:
    """Validate a candidate record.

    Args:
        candidate: Merged extraction (or finalized record) to check
        today: Reference date for future/stale date checks
        categories: Closed category registry; None accepts any non-empty category
        vat_patterns: Country prefix to VAT number pattern table

    Returns:
        ValidationResult with status failed, warning or passed
    """
    errors: list[str] = []
    warnings: list[str] = []

    vendor = (candidate.vendor_name or "").strip()
    if not vendor:
        errors.append("Vendor name is required")
    elif len(vendor) < VENDOR_NAME_MIN_LENGTH:
        errors.append(f"Vendor name must be at least {VENDOR_NAME_MIN_LENGTH} characters")
    elif len(vendor) > VENDOR_NAME_MAX_LENGTH:
        errors.append(f"Vendor name must be at most {VENDOR_NAME_MAX_LENGTH} characters")

    transaction_date = candidate.transaction_date
    if transaction_date is None:
        errors.append("Transaction date is required")
    elif transaction_date > today:
        errors.append(f"Transaction date {transaction_date.isoformat()} is in the future")
    elif transaction_date < today - relativedelta(years=MAX_RECEIPT_AGE_YEARS):
        warnings.append(
            f"Transaction date {transaction_date.isoformat()} is more than "
            f"{MAX_RECEIPT_AGE_YEARS} years old"
        )

    total = candidate.total_amount
    if total is None:
        errors.append("Total amount is required")
    elif total <= 0:
        errors.append("Total amount must be greater than zero")
    elif total > LARGE_AMOUNT_THRESHOLD:
        warnings.append(f"Total amount {total} is unusually large")

    category = (candidate.category or "").strip()
    if not category:
        errors.append("Category is required")
    elif categories is not None and category not in categories:
        errors.append(
            f"Category '{category}' is not recognised. Valid categories: {', '.join(sorted(categories))}"
        )

    if candidate.currency is not None and not _CURRENCY_CODE.match(candidate.currency):
        errors.append(f"Currency '{candidate.currency}' is not a 3-letter ISO code")

    errors.extend(amount_invariant_errors(candidate))

    if candidate.supplier_vat_number:
        vat_warning = check_vat_number(candidate.supplier_vat_number, vat_patterns)
        if vat_warning:
            warnings.append(vat_warning)

    warnings.extend(_vat_breakdown_warnings(candidate))

    if errors:
        status = ValidationStatus.FAILED
    elif warnings:
        status = ValidationStatus.WARNING
    else:
        status = ValidationStatus.PASSED
    return ValidationResult(status=status, errors=tuple(errors), warnings=tuple(warnings))


def _vat_breakdown_warnings(candidate: Candidate) -> list[str]:
    breakdown = candidate.vat_breakdown
    if breakdown is None:
        return []

    warnings = []
    subtotal, vat_amount, vat_rate = breakdown.subtotal, breakdown.vat_amount, breakdown.vat_rate
    # The breakdown is printed in the receipt's own currency
    gross = candidate.original_amount if candidate.original_amount is not None else candidate.total_amount

    if subtotal is not None and vat_amount is not None and gross is not None:
        if abs(subtotal + vat_amount - gross) > AMOUNT_TOLERANCE:
            warnings.append(
                f"VAT breakdown does not add up: subtotal {subtotal} + VAT {vat_amount} != {gross}"
            )

    if subtotal is not None and vat_amount is not None and vat_rate is not None and subtotal > 0:
        expected = subtotal * vat_rate / 100
        tolerance = max(AMOUNT_TOLERANCE, abs(expected) * VAT_RATE_TOLERANCE)
        if abs(vat_amount - expected) > tolerance:
            warnings.append(
                f"VAT amount {vat_amount} does not match {vat_rate}% of subtotal {subtotal}"
            )
    return warnings
