"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, including the parsing of JSON
payload columns back into typed domain values.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from receiptflow.domain import entities as domain
from receiptflow.domain.errors import ValidationError
from receiptflow.domain.extraction import parse_corrections, parse_extraction
from receiptflow.database.models import (
    Category as ORMCategory,
    Entity as ORMEntity,
    ErrorLog as ORMErrorLog,
    FxCacheEntry as ORMFxCacheEntry,
    PendingReceipt as ORMPendingReceipt,
    Receipt as ORMReceipt,
    SheetConfig as ORMSheetConfig,
    User as ORMUser,
    UserStats as ORMUserStats,
)

logger = logging.getLogger(__name__)


def _extraction_to_domain(receipt_id: int, payload: Optional[Any]) -> Optional[domain.RawExtraction]:
    if payload is None:
        return None
    try:
        return parse_extraction(payload)
    except ValidationError as e:
        logger.error("Stored extraction for pending receipt %s is unreadable: %s", receipt_id, e)
        return None


def pending_receipt_to_domain(orm_receipt: ORMPendingReceipt) -> domain.PendingReceipt:
    """Convert SQLAlchemy PendingReceipt model to domain PendingReceipt entity."""
    return domain.PendingReceipt(
        id=orm_receipt.id,
        user_id=orm_receipt.user_id,
        file_name=orm_receipt.file_name,
        status=domain.PendingStatus(orm_receipt.status),
        created_at=orm_receipt.created_at,
        extraction=_extraction_to_domain(orm_receipt.id, orm_receipt.extraction),
        corrections=parse_corrections(orm_receipt.corrections or {}),
        validation_errors=tuple(orm_receipt.validation_errors or ()),
        validation_warnings=tuple(orm_receipt.validation_warnings or ()),
        review_requested_at=orm_receipt.review_requested_at,
        resolved_by=orm_receipt.resolved_by,
        resolved_at=orm_receipt.resolved_at,
        rejection_reason=orm_receipt.rejection_reason,
    )


def canonical_record_to_columns(record: domain.CanonicalReceiptRecord) -> dict[str, Any]:
    """Flatten a canonical record into Receipt column values."""
    breakdown = record.vat_breakdown or domain.VatBreakdown()
    return {
        "vendor_name": record.vendor_name,
        "transaction_date": record.transaction_date,
        "total_amount": record.total_amount,
        "category": record.category,
        "currency": record.currency,
        "original_currency": record.original_currency,
        "original_amount": record.original_amount,
        "exchange_rate": record.exchange_rate,
        "supplier_vat_number": record.supplier_vat_number,
        "vat_subtotal": breakdown.subtotal,
        "vat_amount": breakdown.vat_amount,
        "vat_rate": breakdown.vat_rate,
        "timestamp": record.timestamp,
        "entity": record.entity,
        "processed_by": record.processed_by.value,
        "validation_status": record.validation_status.value,
        "has_errors": record.has_errors,
    }


def receipt_to_domain(orm_receipt: ORMReceipt) -> domain.Receipt:
    """Convert SQLAlchemy Receipt model to domain Receipt entity."""
    breakdown = domain.VatBreakdown(
        subtotal=orm_receipt.vat_subtotal,
        vat_amount=orm_receipt.vat_amount,
        vat_rate=orm_receipt.vat_rate,
    )
    record = domain.CanonicalReceiptRecord(
        vendor_name=orm_receipt.vendor_name,
        transaction_date=orm_receipt.transaction_date,
        total_amount=orm_receipt.total_amount,
        category=orm_receipt.category,
        currency=orm_receipt.currency,
        original_currency=orm_receipt.original_currency,
        original_amount=orm_receipt.original_amount,
        exchange_rate=orm_receipt.exchange_rate,
        timestamp=orm_receipt.timestamp,
        entity=orm_receipt.entity,
        processed_by=domain.ProcessedBy(orm_receipt.processed_by),
        validation_status=domain.ValidationStatus(orm_receipt.validation_status),
        has_errors=orm_receipt.has_errors,
        supplier_vat_number=orm_receipt.supplier_vat_number,
        vat_breakdown=None if breakdown == domain.VatBreakdown() else breakdown,
    )
    return domain.Receipt(
        id=orm_receipt.id,
        pending_receipt_id=orm_receipt.pending_receipt_id,
        user_id=orm_receipt.user_id,
        file_name=orm_receipt.file_name,
        record=record,
        sheet_config_id=orm_receipt.sheet_config_id,
        sheet_identifier=orm_receipt.sheet_identifier,
    )


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def row_snapshot(orm_row: Any) -> dict[str, Any]:
    """Copy every column of a row into a JSON-safe dict, for the archive."""
    return {column.name: _json_value(getattr(orm_row, column.name)) for column in orm_row.__table__.columns}


def user_stats_to_domain(orm_stats: ORMUserStats) -> domain.UserStats:
    """Convert SQLAlchemy UserStats model to domain UserStats entity."""
    return domain.UserStats(
        user_id=orm_stats.user_id,
        total_receipts=orm_stats.total_receipts,
        total_amount=orm_stats.total_amount,
        pending_receipts=orm_stats.pending_receipts,
        last_updated=orm_stats.last_updated,
        last_receipt_processed=orm_stats.last_receipt_processed,
        version=orm_stats.version,
    )


def fx_cache_entry_to_domain(orm_entry: ORMFxCacheEntry) -> domain.FxCacheEntry:
    """Convert SQLAlchemy FxCacheEntry model to domain FxCacheEntry entity."""
    return domain.FxCacheEntry(
        from_currency=orm_entry.from_currency,
        to_currency=orm_entry.to_currency,
        rate=orm_entry.rate,
        cached_at=orm_entry.cached_at,
        expires_at=orm_entry.expires_at,
    )


def sheet_config_to_domain(orm_config: ORMSheetConfig) -> domain.SheetConfig:
    """Convert SQLAlchemy SheetConfig model to domain SheetConfig entity."""
    health = None
    if orm_config.last_health_check is not None:
        health = domain.SheetHealth(
            accessible=bool(orm_config.health_accessible),
            has_permissions=bool(orm_config.health_has_permissions),
            tabs_exist=bool(orm_config.health_tabs_exist),
            error_message=orm_config.health_error_message,
            checked_at=orm_config.last_health_check,
        )
    return domain.SheetConfig(
        id=orm_config.id,
        name=orm_config.name,
        sheet_identifier=orm_config.sheet_identifier,
        is_default=orm_config.is_default,
        status=domain.SheetStatus(orm_config.status),
        assigned_to=domain.SheetAssignment(
            type=domain.AssignmentType(orm_config.assigned_type),
            entity_ids=tuple(orm_config.assigned_entity_ids or ()),
            user_ids=tuple(orm_config.assigned_user_ids or ()),
        ),
        tabs=domain.SheetTabs(
            main_tab_name=orm_config.main_tab_name,
            accountant_tab_name=orm_config.accountant_tab_name,
            create_tabs_if_missing=orm_config.create_tabs_if_missing,
        ),
        health=health,
        total_receipts=orm_config.total_receipts,
        last_receipt_at=orm_config.last_receipt_at,
        created_by=orm_config.created_by,
        created_at=orm_config.created_at,
        last_modified=orm_config.last_modified,
    )


def user_to_domain(orm_user: ORMUser) -> domain.User:
    """Convert SQLAlchemy User model to domain User entity."""
    return domain.User(
        id=orm_user.id,
        entity_id=orm_user.entity_id,
        sheet_config_id=orm_user.sheet_config_id,
        created_at=orm_user.created_at,
    )


def entity_to_domain(orm_entity: ORMEntity) -> domain.Entity:
    """Convert SQLAlchemy Entity model to domain Entity entity."""
    return domain.Entity(
        id=orm_entity.id,
        name=orm_entity.name,
        sheet_config_id=orm_entity.sheet_config_id,
        created_at=orm_entity.created_at,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        description=orm_category.description,
        created_at=orm_category.created_at,
    )


def error_log_to_domain(orm_entry: ORMErrorLog) -> domain.ErrorLogEntry:
    """Convert SQLAlchemy ErrorLog model to domain ErrorLogEntry entity."""
    return domain.ErrorLogEntry(
        id=orm_entry.id,
        timestamp=orm_entry.timestamp,
        severity=domain.Severity(orm_entry.severity),
        operation=orm_entry.operation,
        message=orm_entry.message,
        user_id=orm_entry.user_id,
        receipt_id=orm_entry.receipt_id,
        context=dict(orm_entry.context or {}),
    )
