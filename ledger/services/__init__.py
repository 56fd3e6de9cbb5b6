"""Services package."""

from ledger.services.storage import (
    AuthenticationError,
    GuestRemoteStore,
    RemoteReadError,
    RemoteStore,
    RemoteStoreError,
    RemoteWriteError,
    Subscription,
    SupabaseRemoteStore,
)

__all__ = [
    "AuthenticationError",
    "GuestRemoteStore",
    "RemoteReadError",
    "RemoteStore",
    "RemoteStoreError",
    "RemoteWriteError",
    "Subscription",
    "SupabaseRemoteStore",
]
