"""Currency conversion: cached exchange rates and amount normalization.

A missing rate never blocks finalization. The receipt is kept in its own
currency at a rate of 1 and a warning is logged instead.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from receiptflow.database.base import Database
from receiptflow.domain.audit import AuditLog
from receiptflow.domain.entities import FxCacheEntry, RawExtraction
from receiptflow.domain.errors import ExternalDependencyError
from receiptflow.utils.amount_parser import in_amount_range, round_money
from receiptflow.utils.clock import utc_now

logger = logging.getLogger(__name__)

ONE = Decimal("1")
DEFAULT_TTL = timedelta(hours=24)


class RateProvider(ABC):
    """External source of exchange rates."""

    @abstractmethod
    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Return units of ``to_currency`` per unit of ``from_currency``.

        Raises:
            RateProviderError: On any failure, including timeouts
        """
        pass


class FxRateCache:
    """Exchange rate lookups memoized in the database with a time-to-live."""

    def __init__(
        self,
        db: Database,
        provider: RateProvider,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize rate cache.

        Args:
            db: Database instance holding the cache entries
            provider: Rate provider consulted on a miss
            ttl: How long a fetched rate stays fresh
            clock: Source of naive UTC timestamps
        """
        self.db = db
        self.provider = provider
        self.ttl = ttl
        self.clock = clock

    def get_rate(self, from_currency: str, to_currency: str) -> Optional[Decimal]:
        """Get the rate for a currency pair.

        Args:
            from_currency: ISO code to convert from
            to_currency: ISO code to convert to

        Returns:
            The rate, or None when no rate is available
        """
        source = from_currency.strip().upper()
        target = to_currency.strip().upper()
        if source == target:
            return ONE

        now = self.clock()
        cached = self.db.get_fx_cache_entry(source, target)
        if cached is not None and cached.is_fresh(now):
            return cached.rate

        try:
            # str() keeps a float rate from turning into its binary expansion
            rate = Decimal(str(self.provider.fetch_rate(source, target)))
        except ExternalDependencyError as e:
            logger.warning("Exchange rate %s->%s unavailable: %s", source, target, e)
            return None
        except Exception as e:
            # Third-party providers may raise anything; a bad answer is no answer
            logger.warning("Rate provider failed for %s->%s: %r", source, target, e)
            return None
        if not rate.is_finite():
            logger.warning("Rate provider returned non-finite rate %s for %s->%s", rate, source, target)
            return None
        if rate <= 0:
            logger.warning("Rate provider returned non-positive rate %s for %s->%s", rate, source, target)
            return None

        self.db.upsert_fx_cache_entry(
            FxCacheEntry(
                from_currency=source,
                to_currency=target,
                rate=rate,
                cached_at=now,
                expires_at=now + self.ttl,
            )
        )
        return rate


def apply_currency_defaults(draft: RawExtraction, base_currency: str) -> RawExtraction:
    """Treat a receipt without a currency as already in the base currency."""
    if draft.currency is not None:
        return draft
    return replace(
        draft,
        currency=base_currency,
        original_currency=base_currency,
        original_amount=draft.total_amount,
        exchange_rate=ONE,
    )


def enforce_amount_invariants(draft: RawExtraction) -> RawExtraction:
    """Make original amount, rate and total mutually consistent.

    Runs unconditionally after every merge: a corrected total on a record at
    rate 1 must flow into the original amount, never the reverse.
    """
    changes = {}
    rate = draft.exchange_rate
    if rate is None:
        rate = changes["exchange_rate"] = ONE
    if rate == ONE and draft.original_amount != draft.total_amount:
        changes["original_amount"] = draft.total_amount
    if draft.original_currency is None and draft.currency is not None:
        changes["original_currency"] = draft.currency
    return replace(draft, **changes) if changes else draft


class CurrencyNormalizer:
    """Brings a merged draft into the base currency where a rate is known."""

    def __init__(self, fx_cache: FxRateCache, base_currency: str, audit: AuditLog):
        self.fx_cache = fx_cache
        self.base_currency = base_currency.upper()
        self.audit = audit

    def normalize(
        self,
        draft: RawExtraction,
        *,
        user_id: Optional[str] = None,
        receipt_id: Optional[int] = None,
    ) -> RawExtraction:
        """Apply currency defaults, conversion, then invariant enforcement."""
        draft = apply_currency_defaults(draft, self.base_currency)
        if draft.currency != self.base_currency and draft.original_currency is None:
            draft = self._convert(draft, user_id=user_id, receipt_id=receipt_id)
        return enforce_amount_invariants(draft)

    def _convert(
        self, draft: RawExtraction, *, user_id: Optional[str], receipt_id: Optional[int]
    ) -> RawExtraction:
        # A printed rate of exactly 1 for a foreign currency is a placeholder, not a rate
        if draft.exchange_rate is not None and draft.exchange_rate != ONE:
            rate = draft.exchange_rate
        else:
            rate = self.fx_cache.get_rate(draft.currency, self.base_currency)

        if rate is None:
            self.audit.warning(
                "currency_conversion",
                f"No exchange rate for {draft.currency}->{self.base_currency}; "
                "amount left unconverted",
                user_id=user_id,
                receipt_id=receipt_id,
                context={"currency": draft.currency, "total_amount": draft.total_amount},
            )
            return replace(draft, exchange_rate=ONE)
        if rate <= 0:
            # Left for validation to reject
            return draft

        try:
            converted = round_money(draft.total_amount * rate)
        except InvalidOperation:
            converted = None
        if converted is None or not in_amount_range(converted):
            self.audit.warning(
                "currency_conversion",
                f"Converting {draft.total_amount} {draft.currency} at {rate} is out of range; "
                "amount left unconverted",
                user_id=user_id,
                receipt_id=receipt_id,
                context={"currency": draft.currency, "total_amount": draft.total_amount, "rate": rate},
            )
            return replace(draft, exchange_rate=ONE)

        return replace(
            draft,
            original_currency=draft.currency,
            original_amount=draft.total_amount,
            total_amount=converted,
            currency=self.base_currency,
            exchange_rate=rate,
        )
