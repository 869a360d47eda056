"""Abstract database interface.

Any backing store must provide these primitives; the ones marked atomic must
be a single indivisible operation in the store.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from receiptflow.domain.entities import (
    CanonicalReceiptRecord,
    Category,
    Entity,
    ErrorLogEntry,
    FxCacheEntry,
    LogFilter,
    PendingReceipt,
    PendingStatus,
    Receipt,
    SheetAssignment,
    SheetConfig,
    SheetHealth,
    SheetStatus,
    SheetTabs,
    User,
    UserStats,
)


class Database(ABC):
    """Abstract database interface for receiptflow."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # User and entity operations
    @abstractmethod
    def ensure_user(self, user_id: str) -> User:
        """Return the user, registering it first if unknown."""
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        pass

    @abstractmethod
    def set_user_entity(self, user_id: str, entity_id: Optional[str]) -> None:
        """Move a user into an entity (or out of any entity with None)."""
        pass

    @abstractmethod
    def create_entity(self, entity_id: str, name: str) -> Entity:
        """Create an entity. Raises ConflictError if the ID is taken."""
        pass

    @abstractmethod
    def get_entity(self, entity_id: str) -> Optional[Entity]:
        """Get entity by ID."""
        pass

    @abstractmethod
    def list_entities(self) -> list[Entity]:
        """List all entities ordered by name."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, name: str, description: Optional[str] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category_by_name(self, name: str) -> Optional[Category]:
        """Get category by exact name."""
        pass

    @abstractmethod
    def list_categories(self) -> list[Category]:
        """List all categories ordered by name."""
        pass

    @abstractmethod
    def delete_category(self, category_id: int) -> None:
        """Delete a category."""
        pass

    # Pending receipt operations
    @abstractmethod
    def create_pending_receipt(
        self,
        user_id: str,
        file_name: str,
        extraction: Optional[dict[str, Any]],
        created_at: Optional[datetime] = None,
    ) -> int:
        """Store a new pending receipt with status pending. Returns its ID."""
        pass

    @abstractmethod
    def get_pending_receipt(self, receipt_id: int) -> Optional[PendingReceipt]:
        """Get pending receipt by ID."""
        pass

    @abstractmethod
    def list_pending_receipts(
        self,
        statuses: Iterable[PendingStatus],
        user_id: Optional[str] = None,
        created_before: Optional[datetime] = None,
    ) -> list[PendingReceipt]:
        """List pending receipts in the given statuses, oldest first."""
        pass

    @abstractmethod
    def transition_pending_receipt(
        self,
        receipt_id: int,
        from_statuses: Iterable[PendingStatus],
        to_status: PendingStatus,
        *,
        corrections: Optional[dict[str, Any]] = None,
        validation_errors: Optional[list[str]] = None,
        validation_warnings: Optional[list[str]] = None,
        review_requested_at: Optional[datetime] = None,
        resolved_by: Optional[str] = None,
        resolved_at: Optional[datetime] = None,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        """Atomically move a receipt to ``to_status`` if it is in one of ``from_statuses``.

        Fields left as None are not touched. Returns False if the receipt was
        not in an expected status.
        """
        pass

    # Finalized receipt operations
    @abstractmethod
    def finalize_pending_receipt(
        self,
        receipt_id: int,
        from_statuses: Iterable[PendingStatus],
        record: CanonicalReceiptRecord,
        *,
        sheet_config_id: Optional[int],
        sheet_identifier: str,
        corrections: dict[str, Any],
        validation_errors: list[str],
        validation_warnings: list[str],
        resolved_by: str,
        resolved_at: datetime,
    ) -> Optional[int]:
        """Atomically approve a receipt and store its canonical record.

        Either both happen or neither does. Returns the stored receipt ID, or
        None if the receipt was not in one of ``from_statuses``.

        Raises:
            ConflictError: If the receipt already has a stored record
        """
        pass

    @abstractmethod
    def get_receipt_by_pending_id(self, pending_receipt_id: int) -> Optional[Receipt]:
        """Get the finalized receipt produced by a pending receipt."""
        pass

    @abstractmethod
    def list_receipts(self, user_id: Optional[str] = None) -> list[Receipt]:
        """List finalized receipts, newest first."""
        pass

    @abstractmethod
    def mark_receipt_has_errors(self, receipt_id: int) -> None:
        """Flag a finalized receipt whose ledger write failed."""
        pass

    @abstractmethod
    def archive_pending_receipts(
        self,
        created_before: datetime,
        statuses: Iterable[PendingStatus],
        archived_by: str,
        archived_at: datetime,
    ) -> list[int]:
        """Atomically move matching receipts and their stored records to the archive.

        Returns the archived pending receipt IDs, oldest first.
        """
        pass

    # User stats operations
    @abstractmethod
    def get_user_stats(self, user_id: str) -> Optional[UserStats]:
        """Get stats row for a user."""
        pass

    @abstractmethod
    def create_user_stats(self, user_id: str) -> bool:
        """Insert a zeroed stats row. Returns False if one already exists."""
        pass

    @abstractmethod
    def compare_and_swap_user_stats(self, expected_version: int, stats: UserStats) -> bool:
        """Atomically write ``stats`` if the stored version still equals ``expected_version``.

        The stored version is incremented on success. Returns False when
        another writer got there first.
        """
        pass

    # FX cache operations
    @abstractmethod
    def get_fx_cache_entry(self, from_currency: str, to_currency: str) -> Optional[FxCacheEntry]:
        """Get cached rate for a currency pair, fresh or not."""
        pass

    @abstractmethod
    def upsert_fx_cache_entry(self, entry: FxCacheEntry) -> None:
        """Insert or overwrite the cached rate for a currency pair."""
        pass

    # Sheet config operations
    @abstractmethod
    def create_sheet_config(
        self,
        name: str,
        sheet_identifier: str,
        *,
        is_default: bool,
        assigned_to: SheetAssignment,
        tabs: SheetTabs,
        created_by: str,
    ) -> int:
        """Create a sheet config; if default, clear all other defaults atomically."""
        pass

    @abstractmethod
    def get_sheet_config(self, config_id: int) -> Optional[SheetConfig]:
        """Get sheet config by ID."""
        pass

    @abstractmethod
    def list_sheet_configs(self, include_inactive: bool = False) -> list[SheetConfig]:
        """List sheet configs ordered by name."""
        pass

    @abstractmethod
    def list_active_default_sheet_configs(self) -> list[SheetConfig]:
        """List active default configs, most recently modified first."""
        pass

    @abstractmethod
    def update_sheet_config(self, config_id: int, **fields: Any) -> None:
        """Update sheet config columns; setting is_default clears all other defaults atomically."""
        pass

    @abstractmethod
    def assign_sheet_config_to_user(self, config_id: Optional[int], user_id: str) -> None:
        """Point a user at a config (None clears) and keep assignment lists in step."""
        pass

    @abstractmethod
    def assign_sheet_config_to_entity(self, config_id: Optional[int], entity_id: str) -> None:
        """Point an entity at a config (None clears) and keep assignment lists in step."""
        pass

    @abstractmethod
    def list_users_for_sheet_config(self, config_id: int) -> list[User]:
        """List users whose direct override references a config."""
        pass

    @abstractmethod
    def list_entities_for_sheet_config(self, config_id: int) -> list[Entity]:
        """List entities that reference a config."""
        pass

    @abstractmethod
    def record_sheet_health(
        self, config_id: int, health: SheetHealth, status: SheetStatus
    ) -> None:
        """Store a health check result and the resulting status."""
        pass

    @abstractmethod
    def increment_sheet_stats(self, config_id: int, at: datetime) -> None:
        """Atomically bump a config's receipt count."""
        pass

    # Audit log operations
    @abstractmethod
    def append_log_entry(
        self,
        timestamp: datetime,
        severity: str,
        operation: str,
        message: str,
        user_id: Optional[str] = None,
        receipt_id: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> int:
        """Append an audit log entry. Returns entry ID."""
        pass

    @abstractmethod
    def query_log_entries(self, filters: LogFilter) -> list[ErrorLogEntry]:
        """Query log entries, newest first."""
        pass
