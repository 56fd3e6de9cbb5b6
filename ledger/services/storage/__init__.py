"""
Storage Services Package

Provides the abstract remote store interface and its implementations:
Supabase for authenticated sessions, a no-op store for guest sessions.
"""

from ledger.services.storage.interface import (
    AuthenticationError,
    ChangeCallback,
    RemoteReadError,
    RemoteStore,
    RemoteStoreError,
    RemoteWriteError,
    Subscription,
)
from ledger.services.storage.guest import ClosedSubscription, GuestRemoteStore
from ledger.services.storage.supabase_store import (
    SupabaseRemoteStore,
    SupabaseSubscription,
    connect,
    restore_session,
    sign_in_with_password,
)

__all__ = [
    # Interfaces
    "ChangeCallback",
    "RemoteStore",
    "Subscription",
    # Exceptions
    "AuthenticationError",
    "RemoteReadError",
    "RemoteStoreError",
    "RemoteWriteError",
    # Guest implementation
    "ClosedSubscription",
    "GuestRemoteStore",
    # Supabase implementation
    "SupabaseRemoteStore",
    "SupabaseSubscription",
    "connect",
    "restore_session",
    "sign_in_with_password",
]
