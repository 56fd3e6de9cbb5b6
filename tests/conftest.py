"""
Shared test fixtures.

No test talks to a real backend: FakeRemoteStore keeps remote state in
memory and records every call, RecordingAuditLogger keeps every sync
event it is asked to log.
"""

from typing import Optional

import pytest

from ledger.audit import SyncAuditLogger
from ledger.models.audit import SyncEvent, SyncEventType
from ledger.models.ledger import AppData, MonthlyReport
from ledger.models.remote import ResourceKind
from ledger.services.storage import (
    ChangeCallback,
    RemoteReadError,
    RemoteStore,
    RemoteStoreError,
    RemoteWriteError,
    Subscription,
)


class RecordingAuditLogger(SyncAuditLogger):
    """Audit logger that remembers events instead of only logging them."""

    def __init__(self):
        super().__init__(name="ledger.tests")
        self.events: list[SyncEvent] = []

    def log(self, event: SyncEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: SyncEventType) -> list[SyncEvent]:
        return [e for e in self.events if e.event_type == event_type]


class FakeSubscription(Subscription):
    def __init__(self, on_change: ChangeCallback):
        self.on_change = on_change
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return self.close_calls == 0

    async def close(self) -> None:
        self.close_calls += 1


class FakeRemoteStore(RemoteStore):
    """
    In-memory RemoteStore.

    `data` is what load() returns. Writes are recorded; a write whose
    month key is in `fail_keys` (or any singleton write when
    `fail_singletons` is set) raises RemoteWriteError.
    """

    def __init__(self, data: Optional[AppData] = None):
        self.data = data or AppData()
        self.load_calls = 0
        self.fail_load = False
        self.fail_subscribe = False
        self.fail_keys: set[str] = set()
        self.fail_singletons = False
        self.report_writes: list[MonthlyReport] = []
        self.singleton_writes: list[tuple[ResourceKind, object]] = []
        self.subscriptions: list[FakeSubscription] = []

    async def load(self) -> AppData:
        self.load_calls += 1
        if self.fail_load:
            raise RemoteReadError("backend unavailable")
        return self.data

    async def upsert_report(self, report: MonthlyReport) -> None:
        if report.month_key in self.fail_keys:
            raise RemoteWriteError(f"rejected {report.month_key}")
        self.report_writes.append(report)

    async def upsert_singleton(self, kind: ResourceKind, payload) -> None:
        if self.fail_singletons:
            raise RemoteWriteError(f"rejected {kind.value}")
        self.singleton_writes.append((kind, payload))

    async def subscribe(self, on_change: ChangeCallback) -> Subscription:
        if self.fail_subscribe:
            raise RemoteStoreError("realtime unavailable")
        subscription = FakeSubscription(on_change)
        self.subscriptions.append(subscription)
        return subscription


@pytest.fixture
def audit() -> RecordingAuditLogger:
    return RecordingAuditLogger()


@pytest.fixture
def store() -> FakeRemoteStore:
    return FakeRemoteStore()
