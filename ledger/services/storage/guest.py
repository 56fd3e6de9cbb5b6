"""
Guest (no-op) Remote Store

A guest session uses the same cache and mutation API as an
authenticated one, but nothing ever leaves the process: writes succeed
immediately without doing anything, and there is no realtime channel.
"""

from typing import Callable, Optional

from ledger.models.ledger import AppData, MonthlyReport
from ledger.models.remote import ResourceKind
from ledger.services.storage.interface import (
    ChangeCallback,
    RemoteStore,
    SingletonPayload,
    Subscription,
)


class ClosedSubscription(Subscription):
    """A subscription that was never opened."""

    @property
    def is_open(self) -> bool:
        return False

    async def close(self) -> None:
        return None


class GuestRemoteStore(RemoteStore):
    """
    Remote store for guest sessions.

    load() returns the guest's current in-memory state, taken from the
    snapshot provider attached by the session (empty defaults until then).
    """

    def __init__(self, snapshot_provider: Optional[Callable[[], AppData]] = None):
        self._snapshot_provider = snapshot_provider

    def attach(self, snapshot_provider: Callable[[], AppData]) -> None:
        """Point load() at the guest cache."""
        self._snapshot_provider = snapshot_provider

    async def load(self) -> AppData:
        if self._snapshot_provider is None:
            return AppData()
        return self._snapshot_provider()

    async def upsert_report(self, report: MonthlyReport) -> None:
        return None

    async def upsert_singleton(self, kind: ResourceKind, payload: SingletonPayload) -> None:
        if kind == ResourceKind.REPORTS:
            raise ValueError(f"{kind.value} is not a singleton resource")
        return None

    async def subscribe(self, on_change: ChangeCallback) -> Subscription:
        return ClosedSubscription()
