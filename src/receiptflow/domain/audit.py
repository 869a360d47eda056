"""Append-only audit/error log."""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from receiptflow.database.base import Database
from receiptflow.domain.entities import ErrorLogEntry, LogFilter, Severity
from receiptflow.utils.clock import utc_now

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


def _json_safe(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


class AuditLog:
    """Service for writing and querying the audit/error log.

    Writing never raises: the caller's operation must not fail because its
    log entry could not be stored. Entries are mirrored to Python logging,
    which is also where storage failures end up.
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        """Initialize audit log.

        Args:
            db: Database instance
            clock: Source of naive UTC timestamps
        """
        self.db = db
        self.clock = clock

    def log_event(
        self,
        severity: Severity,
        operation: str,
        message: str,
        *,
        user_id: Optional[str] = None,
        receipt_id: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Append an entry to the log.

        Args:
            severity: Entry severity
            operation: Name of the originating operation (e.g. "finalize")
            message: Human readable message
            user_id: User the entry concerns, if any
            receipt_id: Pending receipt the entry concerns, if any
            context: Free-form key/value details
        """
        safe_context = _json_safe(context or {})
        logger.log(
            _LOG_LEVELS[severity],
            "[%s] %s (user=%s receipt=%s)",
            operation,
            message,
            user_id,
            receipt_id,
        )
        try:
            self.db.append_log_entry(
                timestamp=self.clock(),
                severity=severity.value,
                operation=operation,
                message=message,
                user_id=user_id,
                receipt_id=receipt_id,
                context=safe_context,
            )
        except Exception:
            logger.exception("Failed to store audit entry for %s: %s", operation, message)

    def info(self, operation: str, message: str, **kwargs: Any) -> None:
        self.log_event(Severity.INFO, operation, message, **kwargs)

    def warning(self, operation: str, message: str, **kwargs: Any) -> None:
        self.log_event(Severity.WARNING, operation, message, **kwargs)

    def error(self, operation: str, message: str, **kwargs: Any) -> None:
        self.log_event(Severity.ERROR, operation, message, **kwargs)

    def critical(self, operation: str, message: str, **kwargs: Any) -> None:
        self.log_event(Severity.CRITICAL, operation, message, **kwargs)

    def query_logs(self, filters: Optional[LogFilter] = None) -> list[ErrorLogEntry]:
        """Query log entries, newest first.

        Args:
            filters: Severity, operation, user, receipt and time range filters

        Returns:
            Matching entries in descending time order
        """
        return self.db.query_log_entries(filters or LogFilter())
