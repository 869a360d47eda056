"""Ledger output: row layouts, the sink interface and the guarded writer."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Sequence

from receiptflow.domain.audit import AuditLog
from receiptflow.domain.entities import CanonicalReceiptRecord, SheetConfig, SheetHealth
from receiptflow.domain.errors import LedgerTimeoutError, LedgerWriteError

MAIN_HEADERS = [
    "Vendor Name",
    "Date",
    "Total Amount",
    "Category",
    "Timestamp",
    "Entity",
    "Original Currency",
    "Original Amount",
    "Exchange Rate",
    "Supplier VAT Number",
    "VAT Subtotal",
    "VAT Amount",
    "VAT Rate",
    "Processed By",
    "Validation Status",
    "Has Errors",
]

ACCOUNTANT_HEADERS = [
    "Date",
    "Vendor",
    "Entity",
    "Amount",
    "Currency",
    "VAT Number",
    "VAT Amount",
    "Category",
    "Notes",
]


@dataclass(frozen=True)
class LedgerDestination:
    """One tab of one destination sheet."""

    sheet_identifier: str
    tab_name: str
    headers: tuple[str, ...]
    create_if_missing: bool = True


class LedgerSink(ABC):
    """External ledger that accepts flat rows."""

    @abstractmethod
    def append_row(self, destination: LedgerDestination, row: Mapping[str, str]) -> None:
        """Append a row keyed by header name.

        Raises:
            LedgerWriteError: If the row could not be written
        """
        pass

    @abstractmethod
    def check_health(self, sheet_identifier: str, tab_names: Sequence[str]) -> SheetHealth:
        """Report whether a sheet is reachable, writable and has its tabs."""
        pass


def _text(value: Optional[object]) -> str:
    return "" if value is None else str(value)


def rate_text(rate: Decimal) -> str:
    """Format a rate without trailing zeros or exponent notation."""
    return format(rate.normalize(), "f")


def main_row(record: CanonicalReceiptRecord) -> dict[str, str]:
    """Build the full-detail row for the main tab."""
    breakdown = record.vat_breakdown
    values = [
        record.vendor_name,
        record.transaction_date.isoformat(),
        record.total_amount,
        record.category,
        record.timestamp.isoformat(timespec="seconds"),
        record.entity,
        record.original_currency,
        record.original_amount,
        rate_text(record.exchange_rate),
        record.supplier_vat_number,
        breakdown.subtotal if breakdown else None,
        breakdown.vat_amount if breakdown else None,
        breakdown.vat_rate if breakdown else None,
        record.processed_by.value,
        record.validation_status.value,
        "YES" if record.has_errors else "NO",
    ]
    return {header: _text(value) for header, value in zip(MAIN_HEADERS, values)}


def accountant_row(record: CanonicalReceiptRecord) -> dict[str, str]:
    """Build the condensed, base-currency row for the accountant tab."""
    notes = []
    if record.was_converted:
        notes.append(
            f"Converted from {record.original_amount} {record.original_currency} "
            f"@ {rate_text(record.exchange_rate)}"
        )
    breakdown = record.vat_breakdown
    if breakdown and breakdown.subtotal is not None:
        notes.append(f"Subtotal: {breakdown.subtotal}")
    if breakdown and breakdown.vat_rate is not None:
        notes.append(f"VAT Rate: {breakdown.vat_rate}%")

    values = [
        record.transaction_date.isoformat(),
        record.vendor_name,
        record.entity,
        record.total_amount,
        record.currency,
        record.supplier_vat_number,
        breakdown.vat_amount if breakdown else None,
        record.category,
        " | ".join(notes),
    ]
    return {header: _text(value) for header, value in zip(ACCOUNTANT_HEADERS, values)}


def destinations_for(config: SheetConfig) -> tuple[LedgerDestination, LedgerDestination]:
    """Return the (main, accountant) destinations of a sheet config."""
    create = config.tabs.create_tabs_if_missing
    return (
        LedgerDestination(config.sheet_identifier, config.tabs.main_tab_name, tuple(MAIN_HEADERS), create),
        LedgerDestination(
            config.sheet_identifier, config.tabs.accountant_tab_name, tuple(ACCOUNTANT_HEADERS), create
        ),
    )


class LedgerWriter:
    """Writes finalized records to a sink with a bounded wait per call.

    A failed main-tab write is reported back to the caller; a failed
    accountant-tab write is only logged.

    Each sink call runs on its own daemon thread. A call that outlives the
    timeout is abandoned, not stopped: it may still land in the ledger later,
    so a timeout is reported as an unknown outcome rather than a failed write.
    """

    def __init__(self, sink: LedgerSink, audit: AuditLog, timeout_seconds: float = 30.0):
        """Initialize writer.

        Args:
            sink: Ledger sink to write to
            audit: Audit log for write failures
            timeout_seconds: Longest wait for a single sink call
        """
        self.sink = sink
        self.audit = audit
        self.timeout_seconds = timeout_seconds

    def _run_bounded(self, func: Callable[..., Any], *args: Any) -> tuple[bool, Any]:
        """Run a sink call, waiting at most ``timeout_seconds``.

        Returns:
            (finished, value); finished is False when the call is still running

        Raises:
            Whatever the sink call raised, if it finished
        """
        outcome: dict[str, Any] = {}

        def run():
            try:
                outcome["value"] = func(*args)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, name="ledger-call", daemon=True)
        worker.start()
        worker.join(self.timeout_seconds)
        if worker.is_alive():
            return False, None
        if "error" in outcome:
            raise outcome["error"]
        return True, outcome.get("value")

    def _call(self, destination: LedgerDestination, row: Mapping[str, str]) -> None:
        target = f"{destination.sheet_identifier}/{destination.tab_name}"
        try:
            finished, _ = self._run_bounded(self.sink.append_row, destination, row)
        except LedgerWriteError:
            raise
        except Exception as e:
            # Third-party sinks may raise anything; normalize at the boundary
            raise LedgerWriteError(f"Write to {target} failed: {e}") from e
        if not finished:
            raise LedgerTimeoutError(
                f"Write to {target} timed out after {self.timeout_seconds}s; "
                "outcome unknown, check the ledger before re-sending"
            )

    def write(
        self,
        config: SheetConfig,
        record: CanonicalReceiptRecord,
        *,
        user_id: Optional[str] = None,
        receipt_id: Optional[int] = None,
    ) -> Optional[LedgerWriteError]:
        """Write a record to the main and accountant tabs of a destination.

        Returns:
            None on success, else the main-tab failure; a LedgerTimeoutError
            means the row may still appear
        """
        main, accountant = destinations_for(config)
        try:
            self._call(main, main_row(record))
        except LedgerWriteError as e:
            return e

        try:
            self._call(accountant, accountant_row(record))
        except LedgerWriteError as e:
            self.audit.warning(
                "ledger_write",
                f"Accountant row not confirmed: {e}",
                user_id=user_id,
                receipt_id=receipt_id,
                context={
                    "sheet": config.sheet_identifier,
                    "tab": accountant.tab_name,
                    "outcome_unknown": isinstance(e, LedgerTimeoutError),
                },
            )
        return None

    def check_health(self, config: SheetConfig) -> SheetHealth:
        """Ask the sink about a destination's health, bounded by the same timeout."""
        try:
            finished, health = self._run_bounded(
                self.sink.check_health,
                config.sheet_identifier,
                [config.tabs.main_tab_name, config.tabs.accountant_tab_name],
            )
        except Exception as e:
            message = f"Health check failed: {e}"
        else:
            if finished:
                return health
            message = f"Health check timed out after {self.timeout_seconds}s"
        return SheetHealth(
            accessible=False,
            has_permissions=False,
            tabs_exist=False,
            error_message=message,
        )
