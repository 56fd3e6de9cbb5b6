"""Read-side query package."""

from ledger.queries.months import first_incomplete_month, next_month
from ledger.queries.search import (
    EntryType,
    ReportSummary,
    SearchResult,
    search_entries,
    summarize_report,
)

__all__ = [
    "EntryType",
    "ReportSummary",
    "SearchResult",
    "first_incomplete_month",
    "next_month",
    "search_entries",
    "summarize_report",
]
