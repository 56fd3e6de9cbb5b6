"""
Entry Search and Report Summaries

Deterministic read-side computations over cache snapshots.
Nothing here mutates state or talks to the remote store.
"""

from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from ledger.models.ledger import MonthlyReport


SALARY_13_LABEL = "13th month salary"
SALARY_14_LABEL = "14th month salary"

# Extra words that also find the 13th/14th month salaries
_SALARY_13_TERMS = (SALARY_13_LABEL, "thirteenth")
_SALARY_14_TERMS = (SALARY_14_LABEL, "fourteenth")


class EntryType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class SearchResult(BaseModel):
    """A single matching entry, located by month."""

    model_config = ConfigDict(frozen=True)

    description: str
    amount: float
    year: int
    month: int
    entry_type: EntryType


class ReportSummary(BaseModel):
    """Totals for one month."""

    model_config = ConfigDict(frozen=True)

    total_incomes: float = Field(description="Sum of the extra income entries")
    total_salary: float = Field(description="Salary + incomes + 13th + 14th")
    total_expenses: float = Field(description="Sum of the user's share of expenses")
    shared_expense_count: int
    shared_expenses_total: float = Field(description="Full amount of shared expenses")
    remaining: float = Field(description="total_salary - total_expenses")


def summarize_report(report: MonthlyReport) -> ReportSummary:
    """Compute the month totals shown next to a report."""
    total_incomes = sum(income.amount for income in report.incomes)
    total_salary = report.salary + total_incomes + report.salary13 + report.salary14
    total_expenses = sum(expense.amount for expense in report.expenses)
    shared = [expense for expense in report.expenses if expense.shared]

    return ReportSummary(
        total_incomes=total_incomes,
        total_salary=total_salary,
        total_expenses=total_expenses,
        shared_expense_count=len(shared),
        shared_expenses_total=sum(expense.total_amount for expense in shared),
        remaining=total_salary - total_expenses,
    )


def _label_matches(query: str, terms: tuple[str, ...]) -> bool:
    return any(query in term for term in terms)


def search_entries(reports: Iterable[MonthlyReport], query: str) -> list[SearchResult]:
    """
    Find expenses and incomes whose description contains the query.

    Matching is case-insensitive. The 13th/14th month salaries are
    included when non-zero and the query matches their label.

    Returns:
        Matches, most recent month first. Empty for a blank query.
    """
    query = query.strip().lower()
    if not query:
        return []

    results = []
    for report in reports:
        for expense in report.expenses:
            if query in expense.description.lower():
                results.append(SearchResult(
                    description=expense.description,
                    amount=expense.amount,
                    year=report.year,
                    month=report.month,
                    entry_type=EntryType.EXPENSE,
                ))

        for income in report.incomes:
            if query in income.description.lower():
                results.append(SearchResult(
                    description=income.description,
                    amount=income.amount,
                    year=report.year,
                    month=report.month,
                    entry_type=EntryType.INCOME,
                ))

        if report.salary13 > 0 and _label_matches(query, _SALARY_13_TERMS):
            results.append(SearchResult(
                description=SALARY_13_LABEL,
                amount=report.salary13,
                year=report.year,
                month=report.month,
                entry_type=EntryType.INCOME,
            ))

        if report.salary14 > 0 and _label_matches(query, _SALARY_14_TERMS):
            results.append(SearchResult(
                description=SALARY_14_LABEL,
                amount=report.salary14,
                year=report.year,
                month=report.month,
                entry_type=EntryType.INCOME,
            ))

    # Stable sort keeps expense/income order within a month
    results.sort(key=lambda r: (r.year, r.month), reverse=True)
    return results
