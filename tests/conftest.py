"""Shared pytest fixtures for receiptflow tests."""

import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from receiptflow.config import Settings
from receiptflow.database.factories import create_sqlite_database
from receiptflow.domain.currency import RateProvider
from receiptflow.domain.entities import FxCacheEntry, SheetHealth
from receiptflow.domain.errors import LedgerWriteError, RateProviderError
from receiptflow.domain.ledger import LedgerSink
from receiptflow.services import build_services

NOW = datetime(2024, 6, 15, 12, 0, 0)


class FixedClock:
    """Clock returning a settable naive UTC time."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRateProvider(RateProvider):
    """Rate provider serving a fixed table and recording every call."""

    def __init__(self, rates=None):
        self.rates = dict(rates or {})
        self.calls = []
        self.fail = False

    def fetch_rate(self, from_currency, to_currency):
        self.calls.append((from_currency, to_currency))
        if self.fail:
            raise RateProviderError("rate service unavailable")
        try:
            return self.rates[(from_currency, to_currency)]
        except KeyError:
            raise RateProviderError(f"no rate for {from_currency}->{to_currency}")


class RecordingLedgerSink(LedgerSink):
    """Ledger sink keeping rows in memory.

    Tabs listed in fail_tabs raise; setting ``hold`` to an Event makes every
    write wait for it first.
    """

    def __init__(self):
        self.rows = []
        self.fail_tabs = set()
        self.hold = None
        self._lock = threading.Lock()

    def append_row(self, destination, row):
        if self.hold is not None:
            self.hold.wait(5)
        if destination.tab_name in self.fail_tabs:
            raise LedgerWriteError(f"tab {destination.tab_name} unavailable")
        with self._lock:
            self.rows.append((destination, dict(row)))

    def rows_for(self, tab_name):
        return [row for destination, row in self.rows if destination.tab_name == tab_name]

    def check_health(self, sheet_identifier, tab_names):
        missing = [tab for tab in tab_names if tab in self.fail_tabs]
        return SheetHealth(
            accessible=True,
            has_permissions=True,
            tabs_exist=not missing,
            error_message=f"Missing tabs: {', '.join(missing)}" if missing else None,
        )


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop the handler the CLI installs so each test starts from a bare logger."""
    yield
    logger = logging.getLogger("receiptflow")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def rate_provider():
    return FakeRateProvider({("USD", "GBP"): Decimal("0.79"), ("EUR", "GBP"): Decimal("0.85")})


@pytest.fixture
def ledger_sink():
    return RecordingLedgerSink()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_path=None,
        base_currency="GBP",
        legacy_sheet_id="legacy-ledger",
        ledger_root=str(tmp_path / "ledgers"),
    )


@pytest.fixture
def services(temp_db, settings, rate_provider, ledger_sink, clock):
    """Build the full service graph against the temporary database."""
    built = build_services(
        temp_db, settings, rate_provider=rate_provider, ledger_sink=ledger_sink, clock=clock
    )
    return built


@pytest.fixture
def engine(services):
    return services.engine


@pytest.fixture
def stats_service(services):
    return services.stats


@pytest.fixture
def audit(services):
    return services.audit


@pytest.fixture
def sheet_service(services):
    return services.sheet_configs


@pytest.fixture
def seed_rate(temp_db, clock):
    """Put a fresh rate straight into the FX cache."""

    def _seed(from_currency, to_currency, rate, age=timedelta(0)):
        cached_at = clock() - age
        temp_db.upsert_fx_cache_entry(
            FxCacheEntry(
                from_currency=from_currency,
                to_currency=to_currency,
                rate=Decimal(rate),
                cached_at=cached_at,
                expires_at=cached_at + timedelta(hours=24),
            )
        )

    return _seed


@pytest.fixture
def receipt_payload():
    """Build a complete, valid extraction payload with overrides."""

    def _payload(**overrides):
        payload = {
            "vendorName": "Corner Hardware",
            "transactionDate": "2024-06-10",
            "totalAmount": "42.50",
            "category": "Maintenance",
            "currency": "GBP",
        }
        payload.update(overrides)
        return {key: value for key, value in payload.items() if value is not None}

    return _payload


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
