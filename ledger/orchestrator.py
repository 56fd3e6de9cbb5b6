"""
Session Orchestrator for Monthly Ledger

This module ties the remote store, the cache and the reconciler together
and defines the two session modes:

1. AUTHENTICATED: Supabase-backed. Initial load, realtime subscription,
   every mutation persisted.
2. GUEST: same cache and mutation API, remote calls suppressed, no
   subscription, state lives only as long as the process.

DESIGN DECISION: The mode is fixed when a session is created. Switching
mode means closing the session (subscription torn down, cache cleared)
and creating a new one. SessionManager enforces that ordering.
"""

from enum import Enum
from typing import Awaitable, Callable, Optional

from supabase import AsyncClient

from ledger.audit import SyncAuditLogger, configure_logging
from ledger.config import AppSettings, SupabaseSettings, get_settings
from ledger.models.audit import SyncEventBuilder
from ledger.models.remote import ResourceKind
from ledger.services.storage import (
    AuthenticationError,
    GuestRemoteStore,
    RemoteReadError,
    RemoteStore,
    RemoteStoreError,
    Subscription,
    SupabaseRemoteStore,
    connect,
    restore_session,
    sign_in_with_password,
)
from ledger.sync import ImportResult, LedgerCache, Reconciler
from ledger.validation import MalformedBackupError, parse_backup


class SessionMode(str, Enum):
    """How a session talks to the remote store."""
    AUTHENTICATED = "authenticated"
    GUEST = "guest"


class SessionError(Exception):
    """A session was used outside its lifecycle."""
    pass


class LedgerSession:
    """
    One session: a cache, the store behind it, and (when authenticated)
    the realtime subscription feeding the reconciler.

    Lifecycle: create → start() → ... → close(). A closed session cannot
    be restarted.
    """

    def __init__(
        self,
        mode: SessionMode,
        store: RemoteStore,
        tables: Optional[dict[str, ResourceKind]] = None,
        audit: Optional[SyncAuditLogger] = None,
    ):
        self._mode = mode
        self._store = store
        self._audit = audit or SyncAuditLogger()
        self._cache = LedgerCache(store, audit=self._audit)
        self._reconciler = Reconciler(self._cache, store, tables=tables, audit=self._audit)
        self._subscription: Optional[Subscription] = None
        self._started = False
        self._closed = False

        if isinstance(store, GuestRemoteStore):
            store.attach(lambda: self._cache.snapshot)

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def cache(self) -> LedgerCache:
        return self._cache

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    @property
    def is_open(self) -> bool:
        return self._started and not self._closed

    @property
    def is_live(self) -> bool:
        """True while a realtime subscription is open."""
        return self._subscription is not None and self._subscription.is_open

    async def start(self) -> "LedgerSession":
        """
        Start the session.

        Authenticated: load everything (a RemoteReadError leaves the cache
        empty, it is not fatal), then open the realtime subscription
        (best-effort: a failure is logged and the session runs without push).
        Guest: nothing to load, no subscription.
        """
        if self._closed:
            raise SessionError("Session is closed and cannot be restarted")
        if self._started:
            return self

        if self._mode == SessionMode.AUTHENTICATED:
            try:
                data = await self._store.load()
            except RemoteReadError as e:
                self._audit.log(SyncEventBuilder.remote_load_failed(str(e)))
            else:
                self._cache.replace_all(data)
                self._audit.log(SyncEventBuilder.remote_load_completed(
                    len(data.reports),
                    len(data.calculator_items),
                ))

            try:
                self._subscription = await self._store.subscribe(self._reconciler.schedule)
            except RemoteStoreError as e:
                self._audit.log(SyncEventBuilder.realtime_event_ignored(
                    "*",
                    f"realtime unavailable: {e}",
                ))

        self._started = True
        self._audit.log(SyncEventBuilder.session_started(self._mode.value, len(self._cache.reports)))
        return self

    async def restore_backup_text(self, text: str) -> ImportResult:
        """
        Validate a backup document, then restore it.

        Raises:
            MalformedBackupError: Before any mutation, if the file is bad
        """
        self._require_open()
        try:
            data = parse_backup(text)
        except MalformedBackupError as e:
            self._audit.log(SyncEventBuilder.backup_rejected(str(e)))
            raise
        return await self._cache.restore_backup(data)

    async def close(self) -> None:
        """
        Tear the session down.

        Closes the realtime channel, lets in-flight folds and writes
        finish, then clears the cache to empty defaults.
        """
        if self._closed:
            return
        self._closed = True

        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

        await self._reconciler.drain()
        await self._cache.flush()
        self._cache.reset()
        self._audit.log(SyncEventBuilder.session_closed(self._mode.value))

    async def __aenter__(self) -> "LedgerSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _require_open(self) -> None:
        if not self.is_open:
            raise SessionError("Session is not open")


def create_guest_session(audit: Optional[SyncAuditLogger] = None) -> LedgerSession:
    """Build a guest session (call start() before use)."""
    return LedgerSession(SessionMode.GUEST, GuestRemoteStore(), audit=audit)


def create_authenticated_session(
    store: RemoteStore,
    tables: Optional[dict[str, ResourceKind]] = None,
    audit: Optional[SyncAuditLogger] = None,
) -> LedgerSession:
    """Build a remote-backed session over an authenticated store."""
    if tables is None and isinstance(store, SupabaseRemoteStore):
        tables = store.tables
    return LedgerSession(SessionMode.AUTHENTICATED, store, tables=tables, audit=audit)


StoreFactory = Callable[[AsyncClient, str, SupabaseSettings], RemoteStore]
ClientFactory = Callable[[SupabaseSettings], Awaitable[AsyncClient]]


def _default_store_factory(
    client: AsyncClient,
    user_id: str,
    settings: SupabaseSettings,
) -> RemoteStore:
    return SupabaseRemoteStore(client, user_id, settings=settings)


class SessionManager:
    """
    Owns the current session and performs mode transitions.

    Every sign-in first closes the previous session, so at most one
    realtime channel is ever open per manager.

    Creating a manager applies the logging configuration from AppSettings
    (level and JSON/console rendering).
    """

    def __init__(
        self,
        settings: Optional[SupabaseSettings] = None,
        client_factory: ClientFactory = connect,
        store_factory: StoreFactory = _default_store_factory,
        audit: Optional[SyncAuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        configure_logging(app_settings or get_settings().app)
        self._settings = settings
        self._client_factory = client_factory
        self._store_factory = store_factory
        self._audit = audit or SyncAuditLogger()
        self._client: Optional[AsyncClient] = None
        self._session: Optional[LedgerSession] = None

    @property
    def session(self) -> Optional[LedgerSession]:
        return self._session

    @property
    def is_guest(self) -> bool:
        return self._session is not None and self._session.mode == SessionMode.GUEST

    def _supabase_settings(self) -> SupabaseSettings:
        if self._settings is None:
            self._settings = get_settings().supabase
        return self._settings

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await self._client_factory(self._supabase_settings())
        return self._client

    async def _start_authenticated(self, client: AsyncClient, user_id: str) -> LedgerSession:
        store = self._store_factory(client, user_id, self._supabase_settings())
        session = create_authenticated_session(store, audit=self._audit)
        self._session = session
        return await session.start()

    async def sign_in_with_password(self, email: str, password: str) -> LedgerSession:
        """Close any current session and start an authenticated one."""
        if not email or not password:
            raise SessionError("Email and password are required")
        await self._close_current()
        client = await self._get_client()
        user_id = await sign_in_with_password(client, email, password)
        return await self._start_authenticated(client, user_id)

    async def restore_auth_session(self, access_token: str, refresh_token: str) -> LedgerSession:
        """Close any current session and resume an existing auth session."""
        if not access_token or not refresh_token:
            raise SessionError("Both access and refresh tokens are required")
        await self._close_current()
        client = await self._get_client()
        user_id = await restore_session(client, access_token, refresh_token)
        return await self._start_authenticated(client, user_id)

    async def sign_in_as_guest(self) -> LedgerSession:
        """Close any current session and start a guest one."""
        await self._close_current()
        self._session = create_guest_session(audit=self._audit)
        return await self._session.start()

    async def sign_out(self) -> None:
        """
        Close the current session. For an authenticated session the
        backend auth session is ended too, after local teardown.
        """
        was_authenticated = (
            self._session is not None and self._session.mode == SessionMode.AUTHENTICATED
        )
        await self._close_current()
        if was_authenticated and self._client is not None:
            try:
                await self._client.auth.sign_out()
            except Exception as e:
                raise AuthenticationError(f"Sign-out failed: {e}") from e

    async def _close_current(self) -> None:
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()
