"""
Reconciler

Translates remote row shapes into domain values and folds realtime
change events into the cache.

DESIGN DECISION: This module is the ONLY place where remote rows become
domain values. Rows from the initial load and rows from change events go
through the same functions, so numeric defaulting, field renaming and id
backfilling can never differ between the two paths.

FOLDING RULES:
- insert/update on a report: replace by (year, month) or append, then re-sort
- insert/update on notes/calculator: replace the whole value
- delete on anything: full reload, never a point removal
"""

import asyncio
from typing import TYPE_CHECKING, Any, Iterable, Optional

from pydantic import ValidationError

from ledger.audit import SyncAuditLogger
from ledger.models.audit import SyncEventBuilder
from ledger.models.ledger import (
    AppData,
    CalculatorItem,
    MonthlyReport,
    assign_missing_ids,
)
from ledger.models.remote import (
    CalculatorDataRow,
    ChangeEvent,
    ChangeType,
    GlobalNotesRow,
    MonthlyReportRow,
    ResourceKind,
)
from ledger.services.storage.interface import RemoteReadError, RemoteStore

if TYPE_CHECKING:
    from ledger.sync.cache import LedgerCache


DEFAULT_TABLES = {
    "monthly_reports": ResourceKind.REPORTS,
    "global_notes": ResourceKind.NOTES,
    "calculator_data": ResourceKind.CALCULATOR,
}


# =============================================================================
# ROW MAPPING
# =============================================================================

def report_from_row(row: dict[str, Any]) -> MonthlyReport:
    """
    Map a monthly_reports row to a MonthlyReport.

    Null/absent numerics become 0, absent incomes/expenses become empty,
    null payday/notes become "", and items without an id get one.

    Raises:
        ValidationError: If year/month are missing or an item is malformed
    """
    parsed = MonthlyReportRow.model_validate(row)
    report = MonthlyReport(
        year=parsed.year,
        month=parsed.month,
        payday=parsed.payday or "",
        balance=parsed.balance or 0,
        salary=parsed.salary or 0,
        salary13=parsed.salary_13 or 0,
        salary14=parsed.salary_14 or 0,
        incomes=parsed.incomes or [],
        expenses=parsed.expenses or [],
        notes=parsed.notes or "",
    )
    return report.with_item_ids()


def report_to_row(report: MonthlyReport, user_id: str) -> dict[str, Any]:
    """Build the monthly_reports upsert payload for a report."""
    return {
        "user_id": user_id,
        "year": report.year,
        "month": report.month,
        "payday": report.payday,
        "balance": report.balance,
        "salary": report.salary or 0,
        "salary_13": report.salary13 or 0,
        "salary_14": report.salary14 or 0,
        "incomes": [item.model_dump(mode="json", by_alias=True) for item in report.incomes],
        "expenses": [item.model_dump(mode="json", by_alias=True) for item in report.expenses],
        "notes": report.notes,
    }


def notes_from_row(row: Optional[dict[str, Any]]) -> str:
    """Map a global_notes row (or its absence) to the notes text."""
    if not row:
        return ""
    return GlobalNotesRow.model_validate(row).notes or ""


def calculator_items_from_row(row: Optional[dict[str, Any]]) -> tuple[CalculatorItem, ...]:
    """Map a calculator_data row (or its absence) to calculator items."""
    if not row:
        return ()
    parsed = CalculatorDataRow.model_validate(row)
    items = [CalculatorItem.model_validate(item) for item in parsed.items or []]
    return assign_missing_ids(items)


def calculator_items_to_payload(items: Iterable[CalculatorItem]) -> list[dict[str, Any]]:
    """Serialize calculator items for the calculator_data.items column."""
    return [item.model_dump(mode="json", exclude_none=True) for item in items]


# =============================================================================
# COLLECTION FOLDING
# =============================================================================

def sort_reports(reports: Iterable[MonthlyReport]) -> tuple[MonthlyReport, ...]:
    """Order reports by (year, month), most recent first."""
    return tuple(sorted(reports, key=lambda r: (r.year, r.month), reverse=True))


def fold_report(
    reports: Iterable[MonthlyReport],
    report: MonthlyReport,
) -> tuple[MonthlyReport, ...]:
    """
    Fold one report into a collection.

    Replaces the entry with the same (year, month) in place, or appends,
    then re-sorts the whole collection. Full-record replace: nothing of
    the previous entry survives.
    """
    updated = list(reports)
    for index, existing in enumerate(updated):
        if existing.key == report.key:
            updated[index] = report
            break
    else:
        updated.append(report)
    return sort_reports(updated)


def dedupe_reports(reports: Iterable[MonthlyReport]) -> tuple[MonthlyReport, ...]:
    """Collapse duplicate keys (last occurrence wins) and sort."""
    by_key: dict[tuple[int, int], MonthlyReport] = {}
    for report in reports:
        by_key[report.key] = report
    return sort_reports(by_key.values())


def rows_to_app_data(
    report_rows: Iterable[dict[str, Any]],
    notes_row: Optional[dict[str, Any]],
    calculator_row: Optional[dict[str, Any]],
    audit: Optional[SyncAuditLogger] = None,
) -> AppData:
    """
    Assemble a full snapshot from the rows returned by a bulk load.

    Malformed report rows are skipped (and logged) so one bad row
    cannot hide the rest of the ledger.
    """
    reports = []
    for row in report_rows:
        try:
            reports.append(report_from_row(row))
        except ValidationError as e:
            if audit:
                audit.log(SyncEventBuilder.realtime_event_ignored(
                    "monthly_reports",
                    f"malformed row skipped during load: {e.error_count()} errors",
                ))
    return AppData(
        reports=dedupe_reports(reports),
        global_notes=notes_from_row(notes_row),
        calculator_items=calculator_items_from_row(calculator_row),
    )


# =============================================================================
# EVENT FOLDING
# =============================================================================

class Reconciler:
    """
    Folds realtime change events from the remote store into a LedgerCache.

    Events arrive through schedule() (called from the subscription
    callback) and are applied on independent asyncio tasks.
    """

    def __init__(
        self,
        cache: "LedgerCache",
        store: RemoteStore,
        tables: Optional[dict[str, ResourceKind]] = None,
        audit: Optional[SyncAuditLogger] = None,
    ):
        """
        Initialize reconciler.

        Args:
            cache: Cache to fold events into
            store: Store used for full reloads after a delete
            tables: Remote table name -> resource kind.
                    Defaults to the standard table names.
        """
        self._cache = cache
        self._store = store
        self._tables = dict(tables or DEFAULT_TABLES)
        self._audit = audit or SyncAuditLogger()
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, event: ChangeEvent) -> asyncio.Task:
        """Apply an event on its own task. Safe to use as a subscription callback."""
        task = asyncio.get_running_loop().create_task(self.apply(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every scheduled event has been applied."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def apply(self, event: ChangeEvent) -> None:
        """Fold one change event into the cache."""
        kind = self._tables.get(event.table)
        if kind is None:
            self._audit.log(SyncEventBuilder.realtime_event_ignored(event.table, "unknown table"))
            return

        if event.event_type == ChangeType.DELETE:
            self._audit.log(SyncEventBuilder.full_reload_triggered(kind.value))
            await self.reload()
            return

        try:
            self._fold_upsert(kind, event)
        except ValidationError as e:
            self._audit.log(SyncEventBuilder.realtime_event_ignored(
                event.table,
                f"row could not be mapped: {e.error_count()} errors",
            ))

    def _fold_upsert(self, kind: ResourceKind, event: ChangeEvent) -> None:
        row = event.new_row
        change = event.event_type.value

        if kind == ResourceKind.REPORTS:
            report = report_from_row(row)
            self._cache.merge_report(report)
            self._audit.log(SyncEventBuilder.realtime_event_folded(kind.value, change, report.month_key))
        elif kind == ResourceKind.NOTES:
            if "notes" not in row:
                self._audit.log(SyncEventBuilder.realtime_event_ignored(event.table, "row has no notes"))
                return
            self._cache.replace_global_notes(notes_from_row(row))
            self._audit.log(SyncEventBuilder.realtime_event_folded(kind.value, change))
        else:
            if "items" not in row:
                self._audit.log(SyncEventBuilder.realtime_event_ignored(event.table, "row has no items"))
                return
            self._cache.replace_calculator_items(calculator_items_from_row(row))
            self._audit.log(SyncEventBuilder.realtime_event_folded(kind.value, change))

    async def reload(self) -> bool:
        """
        Replace the whole cache with a fresh load from the store.

        Returns:
            True if the reload succeeded. On RemoteReadError the cache
            is left as it was.
        """
        try:
            data = await self._store.load()
        except RemoteReadError as e:
            self._audit.log(SyncEventBuilder.remote_load_failed(str(e)))
            return False
        self._cache.replace_all(data)
        self._audit.log(SyncEventBuilder.remote_load_completed(
            len(data.reports),
            len(data.calculator_items),
        ))
        return True
