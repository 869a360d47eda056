"""Domain model entities for receiptflow.

These are pure data classes representing business concepts, independent of
database schema. Amounts are Decimals and timestamps are naive UTC datetimes.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class PendingStatus(str, Enum):
    """Workflow status of a pending receipt."""

    PENDING = "pending"
    NEEDS_ADMIN_REVIEW = "needs_admin_review"
    APPROVED = "approved"
    REJECTED = "rejected"


# Statuses from which a receipt may still be finalized or rejected
OPEN_STATUSES = (PendingStatus.PENDING, PendingStatus.NEEDS_ADMIN_REVIEW)
TERMINAL_STATUSES = (PendingStatus.APPROVED, PendingStatus.REJECTED)


class ProcessedBy(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"


class ValidationStatus(str, Enum):
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"
    ADMIN_OVERRIDE = "admin_override"


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SheetStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class AssignmentType(str, Enum):
    ENTITY = "entity"
    USER = "user"
    ALL = "all"


@dataclass(frozen=True)
class VatBreakdown:
    """VAT split printed on a receipt, in the receipt's own currency."""

    subtotal: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class RawExtraction:
    """Untrusted extraction output. Only total_amount is guaranteed."""

    total_amount: Decimal
    vendor_name: Optional[str] = None
    transaction_date: Optional[date] = None
    category: Optional[str] = None
    currency: Optional[str] = None
    original_currency: Optional[str] = None
    original_amount: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    supplier_vat_number: Optional[str] = None
    vat_breakdown: Optional[VatBreakdown] = None


@dataclass(frozen=True)
class CanonicalReceiptRecord:
    """Finalized record whose amounts satisfy the conversion invariants."""

    vendor_name: str
    transaction_date: date
    total_amount: Decimal
    category: str
    currency: str
    original_currency: str
    original_amount: Decimal
    exchange_rate: Decimal
    timestamp: datetime
    entity: str
    processed_by: ProcessedBy
    validation_status: ValidationStatus
    has_errors: bool = False
    supplier_vat_number: Optional[str] = None
    vat_breakdown: Optional[VatBreakdown] = None

    @property
    def was_converted(self) -> bool:
        return self.original_currency != self.currency


@dataclass(frozen=True)
class PendingReceipt:
    """Pending receipt domain entity.

    ``extraction`` is None when the stored payload is missing or unreadable.
    """

    id: int
    user_id: str
    file_name: str
    status: PendingStatus
    created_at: datetime
    extraction: Optional[RawExtraction]
    corrections: dict[str, Any] = field(default_factory=dict)
    validation_errors: tuple[str, ...] = ()
    validation_warnings: tuple[str, ...] = ()
    review_requested_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


@dataclass(frozen=True)
class Receipt:
    """A stored canonical record together with its routing metadata."""

    id: int
    pending_receipt_id: int
    user_id: str
    file_name: str
    record: CanonicalReceiptRecord
    sheet_config_id: Optional[int]
    sheet_identifier: str


@dataclass(frozen=True)
class ValidationResult:
    status: ValidationStatus
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.status != ValidationStatus.FAILED


@dataclass(frozen=True)
class ValidationFailure:
    """Returned (never raised) when a finalize attempt parks the receipt for review."""

    receipt_id: int
    errors: tuple[str, ...]
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class UserStats:
    """Per-user aggregate counters. ``version`` guards compare-and-swap updates."""

    user_id: str
    total_receipts: int = 0
    total_amount: Decimal = Decimal("0")
    pending_receipts: int = 0
    last_updated: Optional[datetime] = None
    last_receipt_processed: Optional[str] = None
    version: int = 0


@dataclass(frozen=True)
class FxCacheEntry:
    from_currency: str
    to_currency: str
    rate: Decimal
    cached_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class SheetTabs:
    main_tab_name: str = "Sheet1"
    accountant_tab_name: str = "Accountant_CSV_Ready"
    create_tabs_if_missing: bool = True


@dataclass(frozen=True)
class SheetAssignment:
    type: AssignmentType = AssignmentType.ALL
    entity_ids: tuple[str, ...] = ()
    user_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class SheetHealth:
    accessible: bool
    has_permissions: bool
    tabs_exist: bool
    error_message: Optional[str] = None
    checked_at: Optional[datetime] = None

    @property
    def is_healthy(self) -> bool:
        return self.accessible and self.has_permissions and self.tabs_exist


@dataclass(frozen=True)
class SheetConfig:
    """Routing destination domain entity.

    ``id`` is None only for the deployment-wide legacy destination, which
    lives outside the database.
    """

    id: Optional[int]
    name: str
    sheet_identifier: str
    is_default: bool = False
    status: SheetStatus = SheetStatus.ACTIVE
    assigned_to: SheetAssignment = field(default_factory=SheetAssignment)
    tabs: SheetTabs = field(default_factory=SheetTabs)
    health: Optional[SheetHealth] = None
    total_receipts: int = 0
    last_receipt_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == SheetStatus.ACTIVE

    @property
    def is_legacy(self) -> bool:
        return self.id is None


@dataclass(frozen=True)
class User:
    id: str
    entity_id: Optional[str]
    sheet_config_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class Entity:
    """Organizational grouping of users."""

    id: str
    name: str
    sheet_config_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class ErrorLogEntry:
    """Append-only audit/error log entry."""

    id: int
    timestamp: datetime
    severity: Severity
    operation: str
    message: str
    user_id: Optional[str] = None
    receipt_id: Optional[int] = None
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LogFilter:
    severity: Optional[Severity] = None
    operation: Optional[str] = None
    user_id: Optional[str] = None
    receipt_id: Optional[int] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: int = 100

    @property
    def has_time_range(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of a finalize, approve or intake call.

    Exactly one of ``record`` and ``failure`` is set unless the receipt was
    left pending without a finalize attempt.
    """

    receipt_id: int
    status: PendingStatus
    record: Optional[CanonicalReceiptRecord] = None
    failure: Optional[ValidationFailure] = None
    warnings: tuple[str, ...] = ()
    destination: Optional[SheetConfig] = None
    ledger_error: Optional[str] = None

    @property
    def finalized(self) -> bool:
        return self.record is not None


@dataclass(frozen=True)
class ArchiveSummary:
    """Receipts archived (or, on a dry run, that would be) before a cutoff."""

    cutoff: datetime
    receipt_ids: tuple[int, ...]
    dry_run: bool

    @property
    def count(self) -> int:
        return len(self.receipt_ids)
