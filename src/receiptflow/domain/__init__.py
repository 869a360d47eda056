"""Domain layer for receiptflow.

Services are exported lazily: they import the database layer, which in turn
imports the domain entities.
"""

import importlib

_EXPORTS = {
    "AuditLog": "receiptflow.domain.audit",
    "CategoryService": "receiptflow.domain.category",
    "CurrencyNormalizer": "receiptflow.domain.currency",
    "DirectoryService": "receiptflow.domain.directory",
    "FxRateCache": "receiptflow.domain.currency",
    "LedgerWriter": "receiptflow.domain.ledger",
    "ReceiptLifecycleEngine": "receiptflow.domain.lifecycle",
    "SheetConfigService": "receiptflow.domain.sheet_config",
    "SheetRoutingResolver": "receiptflow.domain.routing",
    "UserStatsService": "receiptflow.domain.stats",
}

__all__ = list(_EXPORTS)


def __getattr__(name):
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(_EXPORTS[name]), name)
