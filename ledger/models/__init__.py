"""
Data Models Package

This package contains all Pydantic models used by Monthly Ledger.
All data held in the cache or exchanged with the remote store must
conform to these schemas.
"""

from ledger.models.ledger import (
    AppData,
    CalculatorItem,
    Expense,
    Income,
    MonthlyReport,
    assign_missing_ids,
    format_month_key,
    new_item_id,
    parse_month_key,
)
from ledger.models.remote import (
    CalculatorDataRow,
    ChangeEvent,
    ChangeType,
    GlobalNotesRow,
    MonthlyReportRow,
    ResourceKind,
)
from ledger.models.audit import (
    SyncEvent,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
)

__all__ = [
    # Ledger models
    "AppData",
    "CalculatorItem",
    "Expense",
    "Income",
    "MonthlyReport",
    "assign_missing_ids",
    "format_month_key",
    "new_item_id",
    "parse_month_key",
    # Remote models
    "CalculatorDataRow",
    "ChangeEvent",
    "ChangeType",
    "GlobalNotesRow",
    "MonthlyReportRow",
    "ResourceKind",
    # Audit models
    "SyncEvent",
    "SyncEventBuilder",
    "SyncEventType",
    "SyncSeverity",
]
