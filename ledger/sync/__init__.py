"""Cache and reconciliation package."""

from ledger.sync.cache import ImportResult, LedgerCache
from ledger.sync.reconciler import (
    DEFAULT_TABLES,
    Reconciler,
    calculator_items_from_row,
    calculator_items_to_payload,
    dedupe_reports,
    fold_report,
    notes_from_row,
    report_from_row,
    report_to_row,
    rows_to_app_data,
    sort_reports,
)

__all__ = [
    "DEFAULT_TABLES",
    "ImportResult",
    "LedgerCache",
    "Reconciler",
    "calculator_items_from_row",
    "calculator_items_to_payload",
    "dedupe_reports",
    "fold_report",
    "notes_from_row",
    "report_from_row",
    "report_to_row",
    "rows_to_app_data",
    "sort_reports",
]
