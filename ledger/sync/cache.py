"""
Ledger Cache (optimistic mutation API)

The single in-memory source of truth for one session: reports, global
notes and calculator items.

DESIGN DECISION: Mutations are optimistic.
1. The in-memory snapshot is replaced synchronously, so every reader sees
   the edit before any network round trip.
2. The remote write runs on its own asyncio task. Its failure is logged
   and reported through the task result; the optimistic state is NOT
   rolled back. Local and remote may diverge until the next successful
   write or realtime event corrects it.

Bulk operations (import_data, restore_backup) are sequences of individual
optimistic writes, not transactions. A failure on item k neither undoes
items 1..k-1 nor stops k+1..n.

Mutations must be called from inside a running event loop.
"""

import asyncio
from datetime import date
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, Field

from ledger.audit import SyncAuditLogger
from ledger.models.audit import SyncEventBuilder
from ledger.models.ledger import (
    AppData,
    CalculatorItem,
    Expense,
    MonthlyReport,
    assign_missing_ids,
    new_item_id,
)
from ledger.models.remote import ResourceKind
from ledger.queries.months import first_incomplete_month
from ledger.services.storage.interface import RemoteStore, RemoteWriteError
from ledger.sync.reconciler import dedupe_reports, fold_report


SnapshotListener = Callable[[AppData], None]


class ImportResult(BaseModel):
    """Outcome of a non-atomic bulk import."""

    attempted: int = 0
    persisted: list[str] = Field(
        default_factory=list,
        description="Month keys whose remote write succeeded"
    )
    failed: list[str] = Field(
        default_factory=list,
        description="Month keys applied locally but not persisted"
    )

    @property
    def fully_persisted(self) -> bool:
        return not self.failed


class LedgerCache:
    """
    Owned, versioned ledger state for one session.

    Consumers get a handle to the cache; they read `snapshot` (never
    blocks) and call the mutation methods. Listeners registered with
    subscribe() are called with every new snapshot.
    """

    def __init__(
        self,
        store: RemoteStore,
        audit: Optional[SyncAuditLogger] = None,
        initial: Optional[AppData] = None,
    ):
        """
        Initialize cache.

        Args:
            store: Remote store that receives the asynchronous writes
            audit: Sync audit logger (a default one is created if None)
            initial: Starting snapshot, empty by default
        """
        self._store = store
        self._audit = audit or SyncAuditLogger()
        self._data = initial or AppData()
        self._version = 0
        self._listeners: list[SnapshotListener] = []
        self._pending: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> AppData:
        """The current immutable snapshot."""
        return self._data

    @property
    def version(self) -> int:
        """Incremented on every state change."""
        return self._version

    @property
    def reports(self) -> tuple[MonthlyReport, ...]:
        return self._data.reports

    @property
    def global_notes(self) -> str:
        return self._data.global_notes

    @property
    def calculator_items(self) -> tuple[CalculatorItem, ...]:
        return self._data.calculator_items

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def get_report(self, year: int, month: int) -> Optional[MonthlyReport]:
        """Look up a report by key. None when the month has no report."""
        for report in self._data.reports:
            if report.year == year and report.month == month:
                return report
        return None

    def get_report_or_default(self, year: int, month: int) -> MonthlyReport:
        """The stored report, or an unsaved zero-value one for that month."""
        return self.get_report(year, month) or MonthlyReport.empty(year, month)

    def get_first_incomplete_month(self, today: Optional[date] = None) -> str:
        """The month (YYYY-MM) a consumer should open first. See queries.months."""
        return first_incomplete_month(self._data.reports, today=today)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a listener called with each new snapshot.

        Exceptions raised by a listener are logged and swallowed.

        Returns:
            A callable that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Optimistic mutation API
    # -------------------------------------------------------------------------

    def update_report(self, report: MonthlyReport) -> "asyncio.Task[bool]":
        """
        Apply a report locally, then persist it asynchronously.

        Returns:
            The pending write task; resolves to True if persisted,
            False if the remote write failed
        """
        report = report.with_item_ids()
        self.merge_report(report)
        return self._persist(
            ResourceKind.REPORTS,
            report.month_key,
            lambda: self._store.upsert_report(report),
        )

    def update_global_notes(self, notes: str) -> "asyncio.Task[bool]":
        """Replace the global notes locally, then persist asynchronously."""
        self.replace_global_notes(notes)
        return self._persist(
            ResourceKind.NOTES,
            None,
            lambda: self._store.upsert_singleton(ResourceKind.NOTES, notes),
        )

    def update_calculator_items(self, items: Iterable[CalculatorItem]) -> "asyncio.Task[bool]":
        """Replace the calculator items locally, then persist asynchronously."""
        items = assign_missing_ids(items)
        self.replace_calculator_items(items)
        return self._persist(
            ResourceKind.CALCULATOR,
            None,
            lambda: self._store.upsert_singleton(ResourceKind.CALCULATOR, items),
        )

    async def import_data(self, reports: Iterable[MonthlyReport]) -> ImportResult:
        """
        Import reports one by one (AI import, backup restore).

        Each report gets missing ids backfilled and goes through
        update_report; its write is awaited before the next report is
        applied. Not atomic.
        """
        result = ImportResult()
        for report in reports:
            result.attempted += 1
            persisted = await self.update_report(report.with_item_ids())
            if persisted:
                result.persisted.append(report.month_key)
            else:
                result.failed.append(report.month_key)

        self._audit.log(SyncEventBuilder.import_completed(result.attempted, result.failed))
        return result

    async def restore_backup(self, data: AppData) -> ImportResult:
        """
        Apply a parsed backup: reports, then global notes, then calculator items.

        Parse the backup with ledger.validation.parse_backup first, so a
        malformed file is rejected before anything is applied.
        """
        result = await self.import_data(data.reports)
        await self.update_global_notes(data.global_notes)
        await self.update_calculator_items(data.calculator_items)
        self._audit.log(SyncEventBuilder.backup_restored(len(data.reports)))
        return result

    def repeat_expense(self, expense: Expense, year: int, month: int) -> "asyncio.Task[bool]":
        """
        Copy an expense (with a new id) to the end of another month.

        The target month is created lazily if it has no report yet.
        """
        target = self.get_report_or_default(year, month)
        copy = expense.model_copy(update={"id": new_item_id()})
        return self.update_report(
            target.model_copy(update={"expenses": target.expenses + (copy,)})
        )

    async def flush(self) -> None:
        """Wait for every pending remote write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Local-only state changes (used by the reconciler and the session)
    # -------------------------------------------------------------------------

    def merge_report(self, report: MonthlyReport) -> None:
        """Replace-by-key or append, then re-sort. No remote write."""
        self._publish(
            self._data.model_copy(update={"reports": fold_report(self._data.reports, report)}),
            ResourceKind.REPORTS,
            report.month_key,
        )

    def replace_reports(self, reports: Iterable[MonthlyReport]) -> None:
        self._publish(
            self._data.model_copy(update={"reports": dedupe_reports(reports)}),
            ResourceKind.REPORTS,
        )

    def replace_global_notes(self, notes: str) -> None:
        self._publish(
            self._data.model_copy(update={"global_notes": notes or ""}),
            ResourceKind.NOTES,
        )

    def replace_calculator_items(self, items: Iterable[CalculatorItem]) -> None:
        self._publish(
            self._data.model_copy(update={"calculator_items": assign_missing_ids(items)}),
            ResourceKind.CALCULATOR,
        )

    def replace_all(self, data: AppData) -> None:
        """Swap in a complete snapshot (initial load, reload after delete)."""
        self._publish(
            AppData(
                reports=dedupe_reports(data.reports),
                global_notes=data.global_notes,
                calculator_items=assign_missing_ids(data.calculator_items),
            ),
            None,
        )

    def reset(self) -> None:
        """Clear to empty defaults."""
        self._publish(AppData(), None)
        self._audit.log(SyncEventBuilder.cache_reset())

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _publish(
        self,
        data: AppData,
        resource: Optional[ResourceKind],
        key: Optional[str] = None,
    ) -> None:
        self._data = data
        self._version += 1
        if resource is not None:
            self._audit.log(SyncEventBuilder.local_update(resource.value, key, self._version))
        # A failing listener must not stop the write that follows the publish
        for listener in list(self._listeners):
            try:
                listener(data)
            except Exception as e:
                self._audit.log(SyncEventBuilder.listener_failed(self._version, repr(e)))

    def _persist(self, resource: ResourceKind, key: Optional[str], write) -> "asyncio.Task[bool]":
        async def run() -> bool:
            try:
                await write()
            except RemoteWriteError as e:
                self._audit.log(SyncEventBuilder.remote_write_failed(resource.value, key, str(e)))
                return False
            self._audit.log(SyncEventBuilder.remote_write_succeeded(resource.value, key))
            return True

        task = asyncio.get_running_loop().create_task(run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
