"""Wiring of the services that make up the receipt engine."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from receiptflow.config import Settings
from receiptflow.database.base import Database
from receiptflow.domain.audit import AuditLog
from receiptflow.domain.category import CategoryService
from receiptflow.domain.currency import CurrencyNormalizer, FxRateCache, RateProvider
from receiptflow.domain.directory import DirectoryService
from receiptflow.domain.ledger import LedgerSink, LedgerWriter
from receiptflow.domain.lifecycle import ReceiptLifecycleEngine
from receiptflow.domain.routing import SheetRoutingResolver
from receiptflow.domain.sheet_config import SheetConfigService
from receiptflow.domain.stats import UserStatsService
from receiptflow.integrations.csv_ledger import CsvLedgerSink
from receiptflow.integrations.frankfurter import FrankfurterRateProvider
from receiptflow.utils.clock import utc_now


@dataclass
class Services:
    """Everything a caller needs, sharing one database and one audit log."""

    db: Database
    settings: Settings
    audit: AuditLog
    stats: UserStatsService
    categories: CategoryService
    directory: DirectoryService
    fx_cache: FxRateCache
    resolver: SheetRoutingResolver
    ledger: LedgerWriter
    sheet_configs: SheetConfigService
    engine: ReceiptLifecycleEngine

    def close(self) -> None:
        self.db.disconnect()


def build_services(
    db: Database,
    settings: Settings,
    *,
    rate_provider: Optional[RateProvider] = None,
    ledger_sink: Optional[LedgerSink] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    """Build the service graph.

    Args:
        db: Connected database with its schema initialized
        settings: Application settings
        rate_provider: Exchange rate source (defaults to the Frankfurter API)
        ledger_sink: Ledger sink (defaults to CSV files under settings.ledger_root)
        clock: Source of naive UTC timestamps

    Returns:
        Services container
    """
    if rate_provider is None:
        rate_provider = FrankfurterRateProvider(settings.fx_api_url, timeout=settings.fx_timeout_seconds)
    if ledger_sink is None:
        ledger_sink = CsvLedgerSink(settings.ledger_root)

    audit = AuditLog(db, clock=clock)
    stats = UserStatsService(db, clock=clock)
    categories = CategoryService(db)
    directory = DirectoryService(db)
    fx_cache = FxRateCache(
        db, rate_provider, ttl=timedelta(hours=settings.fx_cache_ttl_hours), clock=clock
    )
    resolver = SheetRoutingResolver(db, settings.legacy_sheet_id, audit)
    ledger = LedgerWriter(ledger_sink, audit, timeout_seconds=settings.ledger_timeout_seconds)
    engine = ReceiptLifecycleEngine(
        db,
        audit=audit,
        currency=CurrencyNormalizer(fx_cache, settings.base_currency, audit),
        resolver=resolver,
        ledger=ledger,
        stats=stats,
        categories=categories,
        directory=directory,
        clock=clock,
    )
    return Services(
        db=db,
        settings=settings,
        audit=audit,
        stats=stats,
        categories=categories,
        directory=directory,
        fx_cache=fx_cache,
        resolver=resolver,
        ledger=ledger,
        sheet_configs=SheetConfigService(db, audit, ledger),
        engine=engine,
    )
