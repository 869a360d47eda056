"""Ledger sink that appends rows to CSV files on disk.

Layout: ``<root>/<sheet identifier>/<tab name>.csv``.
"""

import csv
import os
import threading
from pathlib import Path
from typing import Mapping, Sequence

from receiptflow.domain.entities import SheetHealth
from receiptflow.domain.errors import LedgerWriteError
from receiptflow.domain.ledger import LedgerDestination, LedgerSink


class CsvLedgerSink(LedgerSink):
    """One directory per sheet, one CSV file per tab."""

    def __init__(self, root: str):
        self.root = Path(root)
        self._lock = threading.Lock()

    def _tab_path(self, sheet_identifier: str, tab_name: str) -> Path:
        return self.root / sheet_identifier / f"{tab_name}.csv"

    def append_row(self, destination: LedgerDestination, row: Mapping[str, str]) -> None:
        path = self._tab_path(destination.sheet_identifier, destination.tab_name)
        with self._lock:
            try:
                is_new = not path.exists()
                if is_new and not destination.create_if_missing:
                    raise LedgerWriteError(
                        f"Tab '{destination.tab_name}' does not exist in sheet "
                        f"'{destination.sheet_identifier}'"
                    )
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", newline="", encoding="utf-8") as f:
                    writer = csv.DictWriter(f, fieldnames=list(destination.headers))
                    if is_new:
                        writer.writeheader()
                    writer.writerow({header: row.get(header, "") for header in destination.headers})
            except OSError as e:
                raise LedgerWriteError(f"Could not write to {path}: {e}") from e

    def check_health(self, sheet_identifier: str, tab_names: Sequence[str]) -> SheetHealth:
        sheet_dir = self.root / sheet_identifier
        accessible = sheet_dir.is_dir()
        has_permissions = accessible and os.access(sheet_dir, os.W_OK)
        missing = [tab for tab in tab_names if not self._tab_path(sheet_identifier, tab).exists()]

        error_message = None
        if not accessible:
            error_message = f"Sheet directory {sheet_dir} does not exist"
        elif not has_permissions:
            error_message = f"Sheet directory {sheet_dir} is not writable"
        elif missing:
            error_message = f"Missing tabs: {', '.join(missing)}"

        return SheetHealth(
            accessible=accessible,
            has_permissions=has_permissions,
            tabs_exist=accessible and not missing,
            error_message=error_message,
        )
