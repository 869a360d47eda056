"""Per-user aggregate counters.

Every mutation is a compare-and-swap on the row's version: read the current
row, compute the new values, write them only if nobody else wrote in between,
and retry otherwise. There is no unguarded write path.
"""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from receiptflow.database.base import Database
from receiptflow.domain.entities import UserStats
from receiptflow.domain.errors import ConflictError
from receiptflow.utils.clock import utc_now

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 50


class UserStatsService:
    """Service for the atomic per-user counters."""

    def __init__(
        self,
        db: Database,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        """Initialize stats service.

        Args:
            db: Database instance
            clock: Source of naive UTC timestamps
            max_attempts: Compare-and-swap attempts before giving up
        """
        self.db = db
        self.clock = clock
        self.max_attempts = max_attempts

    def get_stats(self, user_id: str) -> UserStats:
        """Get a user's counters; unknown users have all-zero counters."""
        return self.db.get_user_stats(user_id) or UserStats(user_id=user_id)

    def increment_pending(self, user_id: str) -> UserStats:
        """Count an uploaded receipt as pending; called by the upload collaborator."""
        return self._update(
            user_id, lambda stats: replace(stats, pending_receipts=stats.pending_receipts + 1)
        )

    def decrement_pending(self, user_id: str) -> UserStats:
        """Remove a receipt from the pending count (never below zero)."""
        return self._update(
            user_id, lambda stats: replace(stats, pending_receipts=max(0, stats.pending_receipts - 1))
        )

    def increment_user_stats(self, user_id: str, amount: Decimal, file_name: Optional[str] = None) -> UserStats:
        """Add a finalized receipt to the totals without touching the pending count."""
        return self._update(user_id, lambda stats: self._add_receipt(stats, amount, file_name))

    def record_finalization(self, user_id: str, amount: Decimal, file_name: Optional[str] = None) -> UserStats:
        """Add a finalized receipt to the totals and remove it from the pending count.

        Both changes land in the same compare-and-swap.
        """
        return self._update(
            user_id,
            lambda stats: replace(
                self._add_receipt(stats, amount, file_name),
                pending_receipts=max(0, stats.pending_receipts - 1),
            ),
        )

    @staticmethod
    def _add_receipt(stats: UserStats, amount: Decimal, file_name: Optional[str]) -> UserStats:
        return replace(
            stats,
            total_receipts=stats.total_receipts + 1,
            total_amount=stats.total_amount + amount,
            last_receipt_processed=file_name if file_name is not None else stats.last_receipt_processed,
        )

    def _update(self, user_id: str, mutate: Callable[[UserStats], UserStats]) -> UserStats:
        for attempt in range(1, self.max_attempts + 1):
            current = self.db.get_user_stats(user_id)
            if current is None:
                # Losing the insert race is fine; the next read sees the winner's row
                self.db.create_user_stats(user_id)
                continue

            updated = replace(mutate(current), last_updated=self.clock())
            if self.db.compare_and_swap_user_stats(current.version, updated):
                return replace(updated, version=current.version + 1)
            logger.debug("Stats for %s changed concurrently (attempt %d), retrying", user_id, attempt)

        raise ConflictError(
            f"Could not update stats for user '{user_id}' after {self.max_attempts} attempts"
        )
