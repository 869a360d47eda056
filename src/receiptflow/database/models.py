"""SQLAlchemy models for receiptflow database."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

from receiptflow.utils.clock import utc_now

Base = declarative_base()


class Entity(Base):
    """Organizational entity model."""

    __tablename__ = "entities"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    # Plain integer rather than a foreign key: a dangling reference is legal
    sheet_config_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    users = relationship("User", back_populates="entity")


class User(Base):
    """User routing model."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    entity_id = Column(String, ForeignKey("entities.id"), nullable=True)
    sheet_config_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    entity = relationship("Entity", back_populates="users")


class Category(Base):
    """Receipt category model."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)


class PendingReceipt(Base):
    """Pending receipt model. ``extraction`` holds the payload in wire form."""

    __tablename__ = "pending_receipts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    extraction = Column(JSON, nullable=True)
    corrections = Column(JSON, nullable=True)
    validation_errors = Column(JSON, nullable=True)
    validation_warnings = Column(JSON, nullable=True)
    review_requested_at = Column(DateTime, nullable=True)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    receipt = relationship("Receipt", back_populates="pending_receipt", uselist=False)


class Receipt(Base):
    """Finalized canonical receipt model."""

    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True)
    # Unique: a pending receipt finalizes at most once
    pending_receipt_id = Column(
        Integer, ForeignKey("pending_receipts.id"), unique=True, nullable=False
    )
    user_id = Column(String, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    vendor_name = Column(String, nullable=False)
    transaction_date = Column(Date, nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    original_currency = Column(String(3), nullable=False)
    original_amount = Column(Numeric(14, 2), nullable=False)
    exchange_rate = Column(Numeric(18, 8), nullable=False)
    supplier_vat_number = Column(String, nullable=True)
    vat_subtotal = Column(Numeric(14, 2), nullable=True)
    vat_amount = Column(Numeric(14, 2), nullable=True)
    vat_rate = Column(Numeric(6, 3), nullable=True)
    timestamp = Column(DateTime, nullable=False)
    entity = Column(String, nullable=False)
    processed_by = Column(String, nullable=False)
    validation_status = Column(String, nullable=False)
    has_errors = Column(Boolean, default=False, nullable=False)
    sheet_config_id = Column(Integer, nullable=True)
    sheet_identifier = Column(String, nullable=False)

    pending_receipt = relationship("PendingReceipt", back_populates="receipt")


class ArchivedReceipt(Base):
    """Resolved receipt moved out of the active tables, kept as JSON snapshots."""

    __tablename__ = "archived_receipts"

    # Same ID as the pending receipt it was archived from
    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(String, nullable=False, index=True)
    file_name = Column(String, nullable=False)
    status = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)
    pending_receipt = Column(JSON, nullable=False)
    receipt = Column(JSON, nullable=True)
    archived_at = Column(DateTime, nullable=False)
    archived_by = Column(String, nullable=False)


class UserStats(Base):
    """Per-user aggregate counters, updated only by versioned compare-and-swap."""

    __tablename__ = "user_stats"

    user_id = Column(String, primary_key=True)
    total_receipts = Column(Integer, default=0, nullable=False)
    total_amount = Column(Numeric(16, 2), default=0, nullable=False)
    pending_receipts = Column(Integer, default=0, nullable=False)
    last_updated = Column(DateTime, nullable=True)
    last_receipt_processed = Column(String, nullable=True)
    version = Column(Integer, default=0, nullable=False)


class FxCacheEntry(Base):
    """Cached exchange rate keyed by currency pair."""

    __tablename__ = "fx_cache"

    from_currency = Column(String(3), primary_key=True)
    to_currency = Column(String(3), primary_key=True)
    rate = Column(Numeric(18, 8), nullable=False)
    cached_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)


class SheetConfig(Base):
    """Ledger routing destination model."""

    __tablename__ = "sheet_configs"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    sheet_identifier = Column(String, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    status = Column(String, default="active", nullable=False)
    assigned_type = Column(String, default="all", nullable=False)
    assigned_entity_ids = Column(JSON, nullable=False, default=list)
    assigned_user_ids = Column(JSON, nullable=False, default=list)
    main_tab_name = Column(String, default="Sheet1", nullable=False)
    accountant_tab_name = Column(String, default="Accountant_CSV_Ready", nullable=False)
    create_tabs_if_missing = Column(Boolean, default=True, nullable=False)
    health_accessible = Column(Boolean, nullable=True)
    health_has_permissions = Column(Boolean, nullable=True)
    health_tabs_exist = Column(Boolean, nullable=True)
    health_error_message = Column(Text, nullable=True)
    last_health_check = Column(DateTime, nullable=True)
    total_receipts = Column(Integer, default=0, nullable=False)
    last_receipt_at = Column(DateTime, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_modified = Column(DateTime, default=utc_now, nullable=False)


class ErrorLog(Base):
    """Append-only audit/error log model."""

    __tablename__ = "error_logs"

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=utc_now, nullable=False)
    severity = Column(String, nullable=False)
    operation = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    user_id = Column(String, nullable=True)
    receipt_id = Column(Integer, nullable=True)
    context = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_error_logs_timestamp", "timestamp"),
        Index("ix_error_logs_user_timestamp", "user_id", "timestamp"),
    )


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory.

    Sessions are short-lived (one per database call) so the factory can be
    shared between threads.
    """
    connect_args = {}
    if make_url(database_url).get_backend_name() == "sqlite":
        # Concurrent finalizations wait on the write lock instead of failing
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
