"""
Tests for row mapping and realtime event folding.
"""

import pytest

from ledger.models.audit import SyncEventType
from ledger.models.ledger import AppData, Expense, MonthlyReport
from ledger.models.remote import ChangeEvent, ResourceKind
from ledger.sync import (
    LedgerCache,
    Reconciler,
    calculator_items_from_row,
    dedupe_reports,
    fold_report,
    notes_from_row,
    report_from_row,
    report_to_row,
    rows_to_app_data,
)


def _row(year, month, **fields) -> dict:
    return {"user_id": "u1", "year": year, "month": month, **fields}


class TestRowMapping:
    """Tests for remote row -> domain value mapping."""

    def test_null_numerics_become_zero(self):
        """Test defaults for a sparse row."""
        report = report_from_row(_row(2024, 3, balance=None, salary_13=None))
        assert report.balance == 0
        assert report.salary13 == 0
        assert report.salary14 == 0
        assert report.payday == ""
        assert report.expenses == ()

    def test_renamed_salary_columns(self):
        """Test that salary_13/salary_14 map to salary13/salary14."""
        report = report_from_row(_row(2024, 3, salary_13=1500, salary_14=700))
        assert report.salary13 == 1500
        assert report.salary14 == 700

    def test_items_get_ids(self):
        """Test id backfill for items stored without one."""
        report = report_from_row(_row(
            2024, 3,
            expenses=[{"description": "Rent", "amount": 900, "shared": True}],
            incomes=[{"id": "i1", "description": "Gift", "amount": 50}],
        ))
        assert report.expenses[0].id
        assert report.expenses[0].total_amount == 1800
        assert report.incomes[0].id == "i1"

    def test_report_to_row(self):
        """Test the upsert payload for a report."""
        report = MonthlyReport(
            year=2024,
            month=3,
            salary13=10,
            expenses=[Expense(id="e1", description="Gas", amount=5)],
        )
        row = report_to_row(report, "u1")
        assert row["user_id"] == "u1"
        assert row["salary_13"] == 10
        assert row["salary_14"] == 0
        assert row["expenses"][0]["id"] == "e1"
        assert "salary13" not in row

    def test_singleton_rows(self):
        """Test notes and calculator rows, including absent ones."""
        assert notes_from_row(None) == ""
        assert notes_from_row({"id": 1, "notes": None}) == ""
        assert notes_from_row({"id": 1, "notes": "hi"}) == "hi"
        assert calculator_items_from_row(None) == ()
        items = calculator_items_from_row({"id": 2, "items": [{"amount": 4}]})
        assert items[0].amount == 4
        assert items[0].id

    def test_rows_to_app_data_skips_malformed(self, audit):
        """Test that a bad row does not hide the others."""
        data = rows_to_app_data(
            [_row(2024, 1), {"user_id": "u1", "month": 2}, _row(2024, 3)],
            {"notes": "n"},
            None,
            audit=audit,
        )
        assert [r.key for r in data.reports] == [(2024, 3), (2024, 1)]
        assert data.global_notes == "n"
        assert len(audit.of_type(SyncEventType.REALTIME_EVENT_IGNORED)) == 1


class TestFolding:
    """Tests for collection folding."""

    def test_fold_replaces_in_place(self):
        """Test replace-by-key."""
        reports = (MonthlyReport(year=2024, month=2, salary=1), MonthlyReport(year=2024, month=1))
        folded = fold_report(reports, MonthlyReport(year=2024, month=2, salary=2))
        assert len(folded) == 2
        assert folded[0].salary == 2

    def test_fold_is_idempotent(self):
        """Test that a redundant delivery changes nothing."""
        report = MonthlyReport(year=2024, month=2)
        once = fold_report((), report)
        assert fold_report(once, report) == once

    def test_dedupe_last_wins(self):
        """Test duplicate collapse."""
        reports = dedupe_reports([
            MonthlyReport(year=2024, month=1, notes="old"),
            MonthlyReport(year=2023, month=1),
            MonthlyReport(year=2024, month=1, notes="new"),
        ])
        assert [r.key for r in reports] == [(2024, 1), (2023, 1)]
        assert reports[0].notes == "new"


class TestReconciler:
    """Tests for folding change events into the cache."""

    @pytest.mark.asyncio
    async def test_report_upsert_folded(self, store, audit):
        """Test that a remote insert appears in the cache."""
        cache = LedgerCache(store, audit=audit)
        reconciler = Reconciler(cache, store, audit=audit)

        await reconciler.apply(ChangeEvent(
            table="monthly_reports",
            event_type="INSERT",
            new_row=_row(2024, 4, salary=2000),
        ))

        assert cache.get_report(2024, 4).salary == 2000
        assert store.report_writes == []
        assert len(audit.of_type(SyncEventType.REALTIME_EVENT_FOLDED)) == 1

    @pytest.mark.asyncio
    async def test_update_replaces_local_optimistic_value(self, store):
        """Test that a later remote update wins over a local edit."""
        cache = LedgerCache(store)
        await cache.update_report(MonthlyReport(year=2024, month=4, salary=1, notes="local"))
        reconciler = Reconciler(cache, store)

        await reconciler.apply(ChangeEvent(
            table="monthly_reports",
            event_type="update",
            new_row=_row(2024, 4, salary=5),
        ))

        report = cache.get_report(2024, 4)
        assert report.salary == 5
        assert report.notes == ""

    @pytest.mark.asyncio
    async def test_delete_triggers_full_reload(self, store, audit):
        """Test that a delete reloads and replaces the whole collection."""
        cache = LedgerCache(store, initial=AppData(reports=[
            MonthlyReport(year=2024, month=1),
            MonthlyReport(year=2024, month=2),
        ]))
        store.data = AppData(reports=[MonthlyReport(year=2023, month=9)])
        reconciler = Reconciler(cache, store, audit=audit)

        await reconciler.apply(ChangeEvent(
            table="monthly_reports",
            event_type="DELETE",
            old_row={"id": 7},
        ))

        assert store.load_calls == 1
        assert [r.key for r in cache.reports] == [(2023, 9)]
        assert len(audit.of_type(SyncEventType.FULL_RELOAD_TRIGGERED)) == 1

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_cache(self, store, audit):
        """Test that a reload failure leaves the cache untouched."""
        cache = LedgerCache(store, initial=AppData(reports=[MonthlyReport(year=2024, month=1)]))
        store.fail_load = True
        reconciler = Reconciler(cache, store, audit=audit)

        assert await reconciler.reload() is False
        assert len(cache.reports) == 1
        assert len(audit.of_type(SyncEventType.REMOTE_LOAD_FAILED)) == 1

    @pytest.mark.asyncio
    async def test_notes_and_calculator_replaced(self, store):
        """Test whole-value replacement for singleton resources."""
        cache = LedgerCache(store)
        reconciler = Reconciler(cache, store)

        await reconciler.apply(ChangeEvent(
            table="global_notes",
            event_type="UPDATE",
            new_row={"id": 1, "user_id": "u1", "notes": "remote notes"},
        ))
        await reconciler.apply(ChangeEvent(
            table="calculator_data",
            event_type="INSERT",
            new_row={"id": 2, "user_id": "u1", "items": [{"description": "x", "amount": 3}]},
        ))

        assert cache.global_notes == "remote notes"
        assert cache.calculator_items[0].description == "x"

    @pytest.mark.asyncio
    async def test_unknown_table_ignored(self, store, audit):
        """Test that events for other tables change nothing."""
        cache = LedgerCache(store)
        reconciler = Reconciler(cache, store, audit=audit)
        version = cache.version

        await reconciler.apply(ChangeEvent(table="profiles", event_type="INSERT", new_row={"a": 1}))

        assert cache.version == version
        assert len(audit.of_type(SyncEventType.REALTIME_EVENT_IGNORED)) == 1

    @pytest.mark.asyncio
    async def test_malformed_row_ignored(self, store, audit):
        """Test that an unmappable row is logged and skipped."""
        cache = LedgerCache(store)
        reconciler = Reconciler(cache, store, audit=audit)

        await reconciler.apply(ChangeEvent(
            table="monthly_reports",
            event_type="INSERT",
            new_row={"user_id": "u1", "year": 2024, "month": 13},
        ))

        assert cache.reports == ()
        assert len(audit.of_type(SyncEventType.REALTIME_EVENT_IGNORED)) == 1

    @pytest.mark.asyncio
    async def test_scheduled_events_drain(self, store):
        """Test that scheduled events are all applied by drain()."""
        cache = LedgerCache(store)
        reconciler = Reconciler(cache, store)

        for month in (1, 2, 3):
            reconciler.schedule(ChangeEvent(
                table="monthly_reports",
                event_type="INSERT",
                new_row=_row(2024, month),
            ))
        await reconciler.drain()

        assert [r.key for r in cache.reports] == [(2024, 3), (2024, 2), (2024, 1)]

    @pytest.mark.asyncio
    async def test_custom_table_names(self, store):
        """Test that configured table names are routed."""
        cache = LedgerCache(store)
        reconciler = Reconciler(cache, store, tables={"ledger_notes": ResourceKind.NOTES})

        await reconciler.apply(ChangeEvent(
            table="ledger_notes",
            event_type="INSERT",
            new_row={"notes": "custom"},
        ))

        assert cache.global_notes == "custom"

    @pytest.mark.asyncio
    async def test_raising_listener_does_not_fail_fold(self, store, audit):
        """Test that a realtime fold completes even if a listener raises."""
        cache = LedgerCache(store, audit=audit)

        def broken(snapshot):
            raise RuntimeError("render failed")

        cache.subscribe(broken)
        reconciler = Reconciler(cache, store, audit=audit)

        task = reconciler.schedule(ChangeEvent(
            table="monthly_reports",
            event_type="INSERT",
            new_row=_row(2024, 7),
        ))
        await reconciler.drain()

        assert task.exception() is None
        assert cache.get_report(2024, 7) is not None
        assert len(audit.of_type(SyncEventType.REALTIME_EVENT_FOLDED)) == 1
        assert len(audit.of_type(SyncEventType.LISTENER_FAILED)) == 1
