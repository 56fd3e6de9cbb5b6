"""
Month Selection Policy

Decides which month a consumer should open first.

DESIGN DECISION: There is exactly ONE rule, applied in this order:
1. If the current calendar month has a report with a payday, the current
   month is closed: return the NEXT calendar month.
2. Otherwise return the EARLIEST month (ascending scan over all reports,
   past or future) whose report has no payday.
3. If every report has a payday, return the current month.

The scan is ascending so the oldest forgotten month surfaces first.

"Current month" is taken in UTC, so every device agrees on it near a
month boundary.
"""

from datetime import date, datetime, timezone
from typing import Iterable, Optional

from ledger.models.ledger import MonthlyReport, format_month_key


def utc_today() -> date:
    """Today's date in UTC."""
    return datetime.now(timezone.utc).date()


def next_month(year: int, month: int) -> tuple[int, int]:
    """The calendar month after (year, month)."""
    if month == 12:
        return year + 1, 1
    return year, month + 1


def first_incomplete_month(
    reports: Iterable[MonthlyReport],
    today: Optional[date] = None,
) -> str:
    """
    Apply the month selection policy.

    Args:
        reports: Reports in any order
        today: Reference date (defaults to the current UTC date)

    Returns:
        The month to open, formatted YYYY-MM
    """
    today = today or utc_today()
    reports = list(reports)

    current = next(
        (r for r in reports if r.year == today.year and r.month == today.month),
        None,
    )
    if current is not None and current.payday:
        return format_month_key(*next_month(today.year, today.month))

    ascending = sorted(reports, key=lambda r: (r.year, r.month))
    for report in ascending:
        if not report.payday:
            return report.month_key

    return format_month_key(today.year, today.month)
