"""
Abstract Remote Store Interface

DESIGN DECISION: We define an abstract interface for remote storage.
This allows us to:
1. Swap Supabase for another backend later
2. Run a guest session with the same cache and no remote at all
3. Use in-memory storage for testing
4. Keep the cache and reconciler decoupled from the transport

The interface is intentionally small: one bulk read, two upserts,
and a realtime subscription.
"""

from abc import ABC, abstractmethod
from typing import Callable, Union

from ledger.models.ledger import AppData, CalculatorItem, MonthlyReport
from ledger.models.remote import ChangeEvent, ResourceKind


ChangeCallback = Callable[[ChangeEvent], None]

SingletonPayload = Union[str, tuple[CalculatorItem, ...], list[CalculatorItem]]


class Subscription(ABC):
    """
    Handle on an open realtime channel.

    Closing is idempotent. A closed subscription delivers no further events.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True until close() has completed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the channel and release the live connection."""
        pass


class RemoteStore(ABC):
    """
    Abstract interface for the remote ledger store.

    Any storage implementation (Supabase, guest/no-op, in-memory)
    must implement these methods.
    """

    @abstractmethod
    async def load(self) -> AppData:
        """
        Fetch reports, global notes and calculator items for the current identity.

        A missing notes/calculator row is not an error and yields
        an empty default.

        Returns:
            The full snapshot, reports most recent first

        Raises:
            RemoteReadError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def upsert_report(self, report: MonthlyReport) -> None:
        """
        Write a report keyed by (user, year, month), last write wins.

        Raises:
            RemoteWriteError: On transport or auth failure
        """
        pass

    @abstractmethod
    async def upsert_singleton(
        self,
        kind: ResourceKind,
        payload: SingletonPayload,
    ) -> None:
        """
        Write the user's single notes or calculator row.

        Implementations must update the existing row in place when
        there is one, never insert a second row.

        Args:
            kind: ResourceKind.NOTES (payload: str) or
                  ResourceKind.CALCULATOR (payload: calculator items)

        Raises:
            RemoteWriteError: On transport or auth failure
            ValueError: If kind is not a singleton resource
        """
        pass

    @abstractmethod
    async def subscribe(self, on_change: ChangeCallback) -> Subscription:
        """
        Open one realtime channel covering all three tables for the current user.

        Args:
            on_change: Called with every change event, on the event loop thread

        Returns:
            Handle used to close the channel
        """
        pass


class RemoteStoreError(Exception):
    """Base exception for remote store operations."""
    pass


class RemoteReadError(RemoteStoreError):
    """The initial (or a reload) read from the remote store failed."""
    pass


class RemoteWriteError(RemoteStoreError):
    """A remote upsert failed after the optimistic update was applied."""
    pass


class AuthenticationError(RemoteStoreError):
    """Could not establish an authenticated identity with the backend."""
    pass
