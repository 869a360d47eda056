"""Receipt lifecycle: intake, finalization, admin review.

State is carried by the pending receipt's status:

    pending -> approved                     (finalized by user or system)
    pending -> needs_admin_review           (validation failed)
    needs_admin_review -> approved          (user correction or admin approve)
    pending | needs_admin_review -> rejected
    approved | rejected -> archived         (moved out of the active tables)

Every transition is a conditional write that only succeeds from an open
status, so a receipt is finalized or rejected at most once and the pending
counter is decremented at most once.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, NoReturn, Optional

from receiptflow.database.base import Database
from receiptflow.domain.audit import AuditLog
from receiptflow.domain.category import CategoryService
from receiptflow.domain.currency import CurrencyNormalizer
from receiptflow.domain.directory import DirectoryService
from receiptflow.domain.entities import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    ArchiveSummary,
    CanonicalReceiptRecord,
    FinalizeResult,
    PendingReceipt,
    PendingStatus,
    ProcessedBy,
    RawExtraction,
    Receipt,
    ValidationFailure,
    ValidationResult,
    ValidationStatus,
)
from receiptflow.domain.errors import (
    ConflictError,
    CorruptRecordError,
    LedgerTimeoutError,
    NotFoundError,
    ValidationError,
    corrupt_pending_receipt,
    pending_receipt_not_found,
    receipt_already_resolved,
)
from receiptflow.domain.extraction import (
    apply_corrections,
    corrections_to_payload,
    extraction_to_payload,
    parse_corrections,
    parse_extraction,
)
from receiptflow.domain.ledger import LedgerWriter
from receiptflow.domain.routing import SheetRoutingResolver
from receiptflow.domain.stats import UserStatsService
from receiptflow.domain.validation import amount_invariant_errors, validate_receipt
from receiptflow.utils.clock import utc_now

SYSTEM_ACTOR = "system"


class ReceiptLifecycleEngine:
    """Orchestrates a receipt from raw extraction to a finalized ledger entry."""

    def __init__(
        self,
        db: Database,
        *,
        audit: AuditLog,
        currency: CurrencyNormalizer,
        resolver: SheetRoutingResolver,
        ledger: LedgerWriter,
        stats: UserStatsService,
        categories: CategoryService,
        directory: DirectoryService,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize lifecycle engine.

        Args:
            db: Database instance
            audit: Audit log receiving an entry for every transition
            currency: Currency defaults and conversion
            resolver: Destination sheet resolver
            ledger: Ledger writer for finalized records
            stats: Per-user counters
            categories: Category registry used by validation
            directory: User and entity lookups
            clock: Source of naive UTC timestamps
        """
        self.db = db
        self.audit = audit
        self.currency = currency
        self.resolver = resolver
        self.ledger = ledger
        self.stats = stats
        self.categories = categories
        self.directory = directory
        self.clock = clock

    # Intake
    def submit_extraction(
        self,
        user_id: str,
        file_name: str,
        payload: Any,
        *,
        auto_finalize: bool = True,
    ) -> FinalizeResult:
        """Accept an extraction payload as a new pending receipt.

        Args:
            user_id: Uploading user
            file_name: Name of the uploaded receipt image
            payload: Decoded JSON object from the extraction collaborator
            auto_finalize: Run finalization straight away (as the system actor)

        Returns:
            FinalizeResult; status pending when auto_finalize is off

        Raises:
            ValidationError: If the payload has no usable totalAmount
        """
        try:
            extraction = parse_extraction(payload)
        except ValidationError as e:
            self.audit.error(
                "submit_extraction",
                f"Rejected extraction for {file_name}: {e}",
                user_id=user_id,
                context={"file_name": file_name},
            )
            raise

        self.directory.register_user(user_id)
        receipt_id = self.db.create_pending_receipt(
            user_id, file_name, extraction_to_payload(extraction), created_at=self.clock()
        )
        self.audit.info(
            "submit_extraction",
            f"Receipt {file_name} extracted",
            user_id=user_id,
            receipt_id=receipt_id,
            context={"file_name": file_name},
        )

        if not auto_finalize:
            return FinalizeResult(receipt_id=receipt_id, status=PendingStatus.PENDING)
        return self._finalize(receipt_id, None, actor=ProcessedBy.SYSTEM, actor_id=SYSTEM_ACTOR)

    # Queries
    def get_pending_receipt(self, pending_receipt_id: int) -> PendingReceipt:
        """Get a pending receipt in any status.

        Raises:
            NotFoundError: If it does not exist
        """
        pending = self.db.get_pending_receipt(pending_receipt_id)
        if pending is None:
            raise NotFoundError(pending_receipt_not_found(pending_receipt_id))
        return pending

    def get_finalized_receipt(self, pending_receipt_id: int) -> Optional[Receipt]:
        """Get the stored canonical record for a pending receipt, if finalized."""
        return self.db.get_receipt_by_pending_id(pending_receipt_id)

    def list_finalized(self, user_id: Optional[str] = None) -> list[Receipt]:
        """List finalized receipts, newest first."""
        return self.db.list_receipts(user_id=user_id)

    def list_pending_review(
        self,
        user_id: Optional[str] = None,
        statuses: Iterable[PendingStatus] = (PendingStatus.NEEDS_ADMIN_REVIEW,),
    ) -> list[PendingReceipt]:
        """List receipts awaiting attention, oldest first.

        Args:
            user_id: Restrict to one user's receipts
            statuses: Statuses to include (default: awaiting admin review)
        """
        return self.db.list_pending_receipts(statuses=list(statuses), user_id=user_id)

    # Transitions
    def finalize(
        self,
        pending_receipt_id: int,
        corrections: Optional[Mapping[str, Any]] = None,
        *,
        user_id: Optional[str] = None,
    ) -> FinalizeResult:
        """Finalize a receipt on behalf of its user, optionally with corrections.

        Args:
            pending_receipt_id: Pending receipt ID
            corrections: Wire-format field overrides (e.g. {"totalAmount": "75"})
            user_id: Acting user (defaults to the receipt's owner)

        Returns:
            FinalizeResult holding the canonical record on success, or a
            ValidationFailure when the receipt was parked for admin review

        Raises:
            NotFoundError: If the receipt does not exist
            CorruptRecordError: If its extraction payload is missing
            ConflictError: If it was already finalized or rejected
            ValidationError: If the corrections are malformed
        """
        return self._finalize(pending_receipt_id, corrections, actor=ProcessedBy.USER, actor_id=user_id)

    def admin_approve(
        self,
        pending_receipt_id: int,
        corrections: Optional[Mapping[str, Any]] = None,
        *,
        admin_id: str,
        notes: Optional[str] = None,
    ) -> FinalizeResult:
        """Finalize a receipt as an administrator, overriding validation errors.

        The record must still be complete (vendor, date, category, currency)
        and its amounts consistent with its exchange rate.

        Raises:
            NotFoundError: If the receipt does not exist
            CorruptRecordError: If its extraction payload is missing
            ConflictError: If it was already finalized or rejected
            ValidationError: If corrections are malformed or the record cannot be made canonical
        """
        operation = "admin_approve"
        pending = self._load_open(pending_receipt_id, operation)
        merged, draft, result = self._prepare(pending, corrections, operation)

        blockers = self._canonical_blockers(draft)
        if blockers:
            message = f"Cannot approve receipt {pending.id}: {'; '.join(blockers)}"
            self.audit.warning(operation, message, user_id=pending.user_id, receipt_id=pending.id)
            raise ValidationError(message)

        if not result.is_valid:
            self.audit.warning(
                operation,
                f"Admin {admin_id} overrode validation errors on receipt {pending.id}",
                user_id=pending.user_id,
                receipt_id=pending.id,
                context={"errors": result.errors, "admin_id": admin_id},
            )
        return self._complete(
            pending,
            draft,
            merged,
            result,
            processed_by=ProcessedBy.ADMIN,
            validation_status=ValidationStatus.ADMIN_OVERRIDE,
            resolved_by=admin_id,
            operation=operation,
            notes=notes,
        )

    def admin_reject(self, pending_receipt_id: int, reason: str, *, admin_id: str) -> None:
        """Reject a receipt. Terminal; the reason is kept on the record.

        Raises:
            ValidationError: If no reason is given
            NotFoundError: If the receipt does not exist
            ConflictError: If it was already finalized or rejected
        """
        operation = "admin_reject"
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")

        pending = self.db.get_pending_receipt(pending_receipt_id)
        if pending is None:
            self.audit.error(operation, pending_receipt_not_found(pending_receipt_id), receipt_id=pending_receipt_id)
            raise NotFoundError(pending_receipt_not_found(pending_receipt_id))

        moved = self.db.transition_pending_receipt(
            pending.id,
            OPEN_STATUSES,
            PendingStatus.REJECTED,
            resolved_by=admin_id,
            resolved_at=self.clock(),
            rejection_reason=reason,
        )
        if not moved:
            self._raise_already_resolved(pending.id, operation)

        self.stats.decrement_pending(pending.user_id)
        self.audit.info(
            operation,
            f"Receipt {pending.id} rejected by {admin_id}",
            user_id=pending.user_id,
            receipt_id=pending.id,
            context={"reason": reason, "admin_id": admin_id},
        )

    # Housekeeping
    def archive_before(self, cutoff: datetime, *, admin_id: str, dry_run: bool = False) -> ArchiveSummary:
        """Move resolved receipts created before ``cutoff`` out of the active tables.

        Only approved and rejected receipts are archived; open receipts stay
        whatever their age. Counters are left alone.

        Args:
            cutoff: Naive UTC timestamp; receipts created strictly earlier are archived
            admin_id: Administrator running the archive
            dry_run: Only report what would be archived

        Returns:
            ArchiveSummary listing the affected pending receipt IDs

        Raises:
            ValidationError: If no admin ID is given
        """
        operation = "archive"
        admin_id = (admin_id or "").strip()
        if not admin_id:
            raise ValidationError("An admin ID is required to archive receipts")

        if dry_run:
            candidates = self.db.list_pending_receipts(TERMINAL_STATUSES, created_before=cutoff)
            receipt_ids = tuple(pending.id for pending in candidates)
        else:
            receipt_ids = tuple(
                self.db.archive_pending_receipts(
                    cutoff, TERMINAL_STATUSES, archived_by=admin_id, archived_at=self.clock()
                )
            )

        verb = "would archive" if dry_run else "archived"
        self.audit.info(
            operation,
            f"Admin {admin_id} {verb} {len(receipt_ids)} receipts created before {cutoff:%Y-%m-%d %H:%M:%S}",
            context={"admin_id": admin_id, "dry_run": dry_run, "receipt_ids": list(receipt_ids)},
        )
        return ArchiveSummary(cutoff=cutoff, receipt_ids=receipt_ids, dry_run=dry_run)

    # Internals
    def _raise_already_resolved(self, receipt_id: int, operation: str) -> NoReturn:
        current = self.db.get_pending_receipt(receipt_id)
        status = current.status.value if current is not None else "gone"
        message = receipt_already_resolved(receipt_id, status)
        self.audit.warning(operation, message, receipt_id=receipt_id)
        raise ConflictError(message)

    def _load_open(self, receipt_id: int, operation: str) -> PendingReceipt:
        pending = self.db.get_pending_receipt(receipt_id)
        if pending is None:
            self.audit.error(operation, pending_receipt_not_found(receipt_id), receipt_id=receipt_id)
            raise NotFoundError(pending_receipt_not_found(receipt_id))
        if not pending.is_open:
            self._raise_already_resolved(receipt_id, operation)
        if pending.extraction is None:
            self.audit.error(
                operation,
                corrupt_pending_receipt(receipt_id),
                user_id=pending.user_id,
                receipt_id=receipt_id,
            )
            raise CorruptRecordError(corrupt_pending_receipt(receipt_id))
        return pending

    def _prepare(
        self,
        pending: PendingReceipt,
        corrections: Optional[Mapping[str, Any]],
        operation: str,
    ) -> tuple[dict[str, Any], RawExtraction, ValidationResult]:
        try:
            new_corrections = parse_corrections(corrections)
        except ValidationError as e:
            self.audit.warning(
                operation, f"Invalid corrections: {e}", user_id=pending.user_id, receipt_id=pending.id
            )
            raise

        # Later corrections win over earlier ones, which win over the extraction
        merged = {**pending.corrections, **new_corrections}
        draft = apply_corrections(pending.extraction, merged)
        draft = self.currency.normalize(draft, user_id=pending.user_id, receipt_id=pending.id)
        result = validate_receipt(
            draft, today=self.clock().date(), categories=self.categories.registry()
        )
        return merged, draft, result

    def _finalize(
        self,
        receipt_id: int,
        corrections: Optional[Mapping[str, Any]],
        *,
        actor: ProcessedBy,
        actor_id: Optional[str],
    ) -> FinalizeResult:
        operation = "finalize"
        pending = self._load_open(receipt_id, operation)
        merged, draft, result = self._prepare(pending, corrections, operation)

        if not result.is_valid:
            moved = self.db.transition_pending_receipt(
                pending.id,
                OPEN_STATUSES,
                PendingStatus.NEEDS_ADMIN_REVIEW,
                corrections=corrections_to_payload(merged),
                validation_errors=list(result.errors),
                validation_warnings=list(result.warnings),
                review_requested_at=self.clock(),
            )
            if not moved:
                self._raise_already_resolved(pending.id, operation)
            # Still pending: the pending counter is left alone
            self.audit.warning(
                operation,
                f"Receipt {pending.id} failed validation and needs admin review",
                user_id=pending.user_id,
                receipt_id=pending.id,
                context={"errors": result.errors, "warnings": result.warnings, "actor": actor},
            )
            return FinalizeResult(
                receipt_id=pending.id,
                status=PendingStatus.NEEDS_ADMIN_REVIEW,
                failure=ValidationFailure(pending.id, result.errors, result.warnings),
                warnings=result.warnings,
            )

        status = ValidationStatus.WARNING if result.warnings else ValidationStatus.PASSED
        return self._complete(
            pending,
            draft,
            merged,
            result,
            processed_by=actor,
            validation_status=status,
            resolved_by=actor_id or pending.user_id,
            operation=operation,
        )

    def _canonical_blockers(self, draft: RawExtraction) -> list[str]:
        missing = [
            label
            for label, value in (
                ("vendor name", draft.vendor_name),
                ("transaction date", draft.transaction_date),
                ("category", draft.category),
                ("currency", draft.currency),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        blockers = [f"missing {', '.join(missing)}"] if missing else []
        return blockers + amount_invariant_errors(draft)

    def _complete(
        self,
        pending: PendingReceipt,
        draft: RawExtraction,
        merged: dict[str, Any],
        result: ValidationResult,
        *,
        processed_by: ProcessedBy,
        validation_status: ValidationStatus,
        resolved_by: str,
        operation: str,
        notes: Optional[str] = None,
    ) -> FinalizeResult:
        now = self.clock()
        record = CanonicalReceiptRecord(
            vendor_name=draft.vendor_name.strip(),
            transaction_date=draft.transaction_date,
            total_amount=draft.total_amount,
            category=draft.category.strip(),
            currency=draft.currency,
            original_currency=draft.original_currency,
            original_amount=draft.original_amount,
            exchange_rate=draft.exchange_rate,
            timestamp=now,
            entity=self.directory.entity_name_for_user(pending.user_id),
            processed_by=processed_by,
            validation_status=validation_status,
            has_errors=False,
            supplier_vat_number=draft.supplier_vat_number,
            vat_breakdown=draft.vat_breakdown,
        )

        # The stored record carries its destination, so routing comes first
        destination = self.resolver.resolve(pending.user_id)
        stored_id = self.db.finalize_pending_receipt(
            pending.id,
            OPEN_STATUSES,
            record,
            sheet_config_id=destination.id,
            sheet_identifier=destination.sheet_identifier,
            corrections=corrections_to_payload(merged),
            validation_errors=list(result.errors),
            validation_warnings=list(result.warnings),
            resolved_by=resolved_by,
            resolved_at=now,
        )
        if stored_id is None:
            self._raise_already_resolved(pending.id, operation)

        self.stats.record_finalization(pending.user_id, record.total_amount, pending.file_name)
        self.audit.info(
            operation,
            f"Receipt {pending.id} finalized by {processed_by.value}",
            user_id=pending.user_id,
            receipt_id=pending.id,
            context={
                "resolved_by": resolved_by,
                "validation_status": validation_status,
                "total_amount": record.total_amount,
                "currency": record.currency,
                "sheet_config_id": destination.id,
                "notes": notes,
            },
        )

        ledger_error = None
        write_error = self.ledger.write(
            destination, record, user_id=pending.user_id, receipt_id=pending.id
        )
        if write_error is not None:
            # The transition and counters stand; the record is only flagged
            ledger_error = str(write_error)
            self.db.mark_receipt_has_errors(stored_id)
            record = replace(record, has_errors=True)
            self.audit.critical(
                "ledger_write",
                f"Receipt {pending.id} finalized but the write to {destination.sheet_identifier} "
                f"was not confirmed: {ledger_error}",
                user_id=pending.user_id,
                receipt_id=pending.id,
                context={
                    "sheet_config_id": destination.id,
                    "outcome_unknown": isinstance(write_error, LedgerTimeoutError),
                },
            )
        elif destination.id is not None:
            self.db.increment_sheet_stats(destination.id, now)

        return FinalizeResult(
            receipt_id=pending.id,
            status=PendingStatus.APPROVED,
            record=record,
            warnings=result.warnings,
            destination=destination,
            ledger_error=ledger_error,
        )
