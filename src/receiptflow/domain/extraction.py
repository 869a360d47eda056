"""Parsing of untrusted extraction payloads and user/admin corrections.

Payloads arrive as JSON objects with camelCase keys. Every key except
``totalAmount`` may be missing, null, or garbage; garbage in an optional field
is dropped with a log line rather than failing intake.
"""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from receiptflow.domain.entities import RawExtraction, VatBreakdown
from receiptflow.domain.errors import ValidationError, unknown_correction_field
from receiptflow.utils.amount_parser import parse_amount
from receiptflow.utils.date_parser import parse_date

logger = logging.getLogger(__name__)


def _parse_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        raise ValueError(f"expected text, got {type(value).__name__}")
    return value.strip() or None


def _parse_currency(value: Any) -> Optional[str]:
    text = _parse_text(value)
    return text.upper() if text else None


def _parse_optional_amount(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return parse_amount(value)


def _parse_vat_breakdown(value: Any) -> Optional[VatBreakdown]:
    if not isinstance(value, Mapping):
        raise ValueError("vatBreakdown must be an object")
    breakdown = VatBreakdown(
        subtotal=_parse_optional_amount(value.get("subtotal")),
        vat_amount=_parse_optional_amount(value.get("vatAmount")),
        vat_rate=_parse_optional_amount(value.get("vatRate")),
    )
    if breakdown == VatBreakdown():
        return None
    return breakdown


# Wire key -> (RawExtraction attribute, parser)
EXTRACTION_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "vendorName": ("vendor_name", _parse_text),
    "transactionDate": ("transaction_date", parse_date),
    "totalAmount": ("total_amount", parse_amount),
    "category": ("category", _parse_text),
    "currency": ("currency", _parse_currency),
    "originalCurrency": ("original_currency", _parse_currency),
    "originalAmount": ("original_amount", parse_amount),
    "exchangeRate": ("exchange_rate", parse_amount),
    "supplierVatNumber": ("supplier_vat_number", _parse_text),
    "vatBreakdown": ("vat_breakdown", _parse_vat_breakdown),
}

_WIRE_KEYS = {attr: key for key, (attr, _) in EXTRACTION_FIELDS.items()}


def parse_extraction(payload: Any) -> RawExtraction:
    """Parse an extraction payload into a RawExtraction.

    Args:
        payload: Decoded JSON object from the extraction collaborator

    Returns:
        RawExtraction with every unreadable optional field left as None

    Raises:
        ValidationError: If the payload is not an object or totalAmount is
            missing or unreadable
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Extraction payload must be a JSON object")
    if payload.get("totalAmount") is None:
        raise ValidationError("Extraction payload has no totalAmount")

    values: dict[str, Any] = {}
    for key, (attr, parser) in EXTRACTION_FIELDS.items():
        raw = payload.get(key)
        if raw is None:
            continue
        try:
            values[attr] = parser(raw)
        except ValueError as e:
            if key == "totalAmount":
                raise ValidationError(f"Invalid totalAmount: {e}") from e
            logger.warning("Ignoring unreadable %s in extraction payload: %s", key, e)

    return RawExtraction(**values)


def parse_corrections(payload: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Parse a corrections object into RawExtraction attribute values.

    Only keys present in the payload are returned, so unspecified fields keep
    their extracted values when applied. An explicit null clears a field.

    Raises:
        ValidationError: On unknown keys, unreadable values, or an attempt to
            clear totalAmount
    """
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Corrections must be a JSON object")

    corrections: dict[str, Any] = {}
    for key, raw in payload.items():
        if key not in EXTRACTION_FIELDS:
            raise ValidationError(unknown_correction_field(key, list(EXTRACTION_FIELDS)))
        attr, parser = EXTRACTION_FIELDS[key]
        if raw is None or raw == "":
            if key == "totalAmount":
                raise ValidationError("totalAmount cannot be cleared")
            corrections[attr] = None
            continue
        try:
            corrections[attr] = parser(raw)
        except ValueError as e:
            raise ValidationError(f"Invalid value for {key}: {e}") from e
    return corrections


def apply_corrections(extraction: RawExtraction, corrections: Mapping[str, Any]) -> RawExtraction:
    """Overlay parsed corrections on an extraction, field by field."""
    if not corrections:
        return extraction
    return replace(extraction, **corrections)


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, VatBreakdown):
        return {
            "subtotal": _to_json_value(value.subtotal),
            "vatAmount": _to_json_value(value.vat_amount),
            "vatRate": _to_json_value(value.vat_rate),
        }
    return value


def extraction_to_payload(extraction: RawExtraction) -> dict[str, Any]:
    """Serialize an extraction back to its JSON wire form for storage."""
    payload = {}
    for attr, key in _WIRE_KEYS.items():
        value = getattr(extraction, attr)
        if value is not None:
            payload[key] = _to_json_value(value)
    return payload


def corrections_to_payload(corrections: Mapping[str, Any]) -> dict[str, Any]:
    """Serialize parsed corrections back to their JSON wire form for storage."""
    return {_WIRE_KEYS[attr]: _to_json_value(value) for attr, value in corrections.items()}
