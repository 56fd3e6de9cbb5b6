"""
Supabase Remote Store Implementation

DESIGN DECISION: Supabase (Postgres + PostgREST + Realtime) is the remote
backend because:
1. Row-level security keeps every user's rows private with one anon key
2. Upserts with ON CONFLICT give last-write-wins per (user, year, month)
3. Realtime postgres_changes pushes edits made on other devices

TRADEOFFS:
- Singleton tables (notes, calculator) have no natural key besides
  "one per user", so we look the row id up before every write
- No transactions across tables (bulk operations are not atomic anyway)

The implementation follows the abstract interface, so the cache and the
reconciler never see a Supabase type.
"""

from typing import Any, Optional

from supabase import AsyncClient, acreate_client
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from ledger.audit import SyncAuditLogger
from ledger.config import SupabaseSettings
from ledger.models.audit import SyncEventBuilder
from ledger.models.ledger import AppData, MonthlyReport
from ledger.models.remote import ChangeEvent, ResourceKind
from ledger.services.storage.interface import (
    AuthenticationError,
    ChangeCallback,
    RemoteReadError,
    RemoteStore,
    RemoteStoreError,
    RemoteWriteError,
    SingletonPayload,
    Subscription,
)
from ledger.sync.reconciler import (
    calculator_items_to_payload,
    report_to_row,
    rows_to_app_data,
)


REPORT_CONFLICT_COLUMNS = "user_id,year,month"


async def connect(settings: SupabaseSettings) -> AsyncClient:
    """Create an async Supabase client from settings."""
    try:
        return await acreate_client(settings.url, settings.key)
    except Exception as e:
        raise RemoteStoreError(f"Failed to create Supabase client: {e}") from e


async def sign_in_with_password(client: AsyncClient, email: str, password: str) -> str:
    """
    Authenticate with email/password.

    Returns:
        The authenticated user id
    """
    try:
        response = await client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as e:
        raise AuthenticationError(f"Sign-in failed: {e}") from e
    if response.user is None:
        raise AuthenticationError("Sign-in returned no user")
    return response.user.id


async def restore_session(client: AsyncClient, access_token: str, refresh_token: str) -> str:
    """
    Resume an existing auth session (e.g. one obtained through OAuth).

    Returns:
        The authenticated user id
    """
    try:
        response = await client.auth.set_session(access_token, refresh_token)
    except Exception as e:
        raise AuthenticationError(f"Could not restore session: {e}") from e
    if response.user is None:
        raise AuthenticationError("Session has no user")
    return response.user.id


class SupabaseSubscription(Subscription):
    """A realtime channel opened by SupabaseRemoteStore.subscribe()."""

    def __init__(
        self,
        client: AsyncClient,
        channel: Any,
        name: str,
        audit: Optional[SyncAuditLogger] = None,
    ):
        self._client = client
        self._channel = channel
        self._name = name
        self._audit = audit or SyncAuditLogger()
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    async def close(self) -> None:
        if not self._open:
            return
        self._open = False
        await self._client.remove_channel(self._channel)
        self._audit.log(SyncEventBuilder.subscription_closed(self._name))


class SupabaseRemoteStore(RemoteStore):
    """
    Supabase implementation of the remote ledger store.

    Every query is filtered to the authenticated user id, on top of the
    row-level security policies on the tables themselves.
    """

    def __init__(
        self,
        client: AsyncClient,
        user_id: str,
        settings: Optional[SupabaseSettings] = None,
        audit: Optional[SyncAuditLogger] = None,
        retry_attempts: int = 3,
        retry_wait=None,
    ):
        """
        Initialize the store.

        Args:
            client: Authenticated async Supabase client
            user_id: Id of the authenticated user
            settings: Table/channel names (defaults used if None)
            retry_attempts: Attempts per remote call before giving up
            retry_wait: tenacity wait strategy (exponential 2s..10s by default)
        """
        if not user_id:
            raise AuthenticationError("A user id is required for a remote-backed store")
        self._client = client
        self._user_id = user_id
        self._audit = audit or SyncAuditLogger()
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

        self._schema = settings.db_schema if settings else "public"
        self._channel_name = settings.channel_name if settings else "public:data"
        self._table_names = {
            ResourceKind.REPORTS: settings.reports_table if settings else "monthly_reports",
            ResourceKind.NOTES: settings.notes_table if settings else "global_notes",
            ResourceKind.CALCULATOR: settings.calculator_table if settings else "calculator_data",
        }

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def tables(self) -> dict[str, ResourceKind]:
        """Remote table name -> resource kind, as needed by the Reconciler."""
        return {name: kind for kind, name in self._table_names.items()}

    async def _execute(self, query) -> Any:
        """Execute a PostgREST query with retries. Returns response data."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=self._retry_wait,
            reraise=True,
        ):
            with attempt:
                response = await query.execute()
                return response.data

    async def _select_single(self, kind: ResourceKind, columns: str = "*") -> Optional[dict]:
        rows = await self._execute(
            self._client.table(self._table_names[kind])
            .select(columns)
            .eq("user_id", self._user_id)
            .limit(1)
        )
        return rows[0] if rows else None

    async def load(self) -> AppData:
        """Load all three resources for the current user."""
        try:
            report_rows = await self._execute(
                self._client.table(self._table_names[ResourceKind.REPORTS])
                .select("*")
                .eq("user_id", self._user_id)
                .order("year", desc=True)
                .order("month", desc=True)
            )
            notes_row = await self._select_single(ResourceKind.NOTES)
            calculator_row = await self._select_single(ResourceKind.CALCULATOR)
        except Exception as e:
            raise RemoteReadError(f"Failed to load ledger: {e}") from e

        return rows_to_app_data(report_rows or [], notes_row, calculator_row, audit=self._audit)

    async def upsert_report(self, report: MonthlyReport) -> None:
        """Upsert one report, last write wins on (user_id, year, month)."""
        try:
            await self._execute(
                self._client.table(self._table_names[ResourceKind.REPORTS])
                .upsert(report_to_row(report, self._user_id), on_conflict=REPORT_CONFLICT_COLUMNS)
            )
        except Exception as e:
            raise RemoteWriteError(f"Failed to upsert report {report.month_key}: {e}") from e

    async def upsert_singleton(self, kind: ResourceKind, payload: SingletonPayload) -> None:
        """Update the user's notes/calculator row in place, inserting only if absent."""
        if kind == ResourceKind.NOTES:
            row: dict[str, Any] = {"user_id": self._user_id, "notes": payload or ""}
        elif kind == ResourceKind.CALCULATOR:
            row = {"user_id": self._user_id, "items": calculator_items_to_payload(payload or ())}
        else:
            raise ValueError(f"{kind.value} is not a singleton resource")

        table = self._table_names[kind]
        try:
            existing = await self._select_single(kind, columns="id")
            if existing and existing.get("id") is not None:
                row["id"] = existing["id"]
                await self._execute(self._client.table(table).upsert(row, on_conflict="id"))
            else:
                await self._execute(self._client.table(table).insert(row))
        except Exception as e:
            raise RemoteWriteError(f"Failed to write {kind.value}: {e}") from e

    async def subscribe(self, on_change: ChangeCallback) -> Subscription:
        """Open one channel with a postgres_changes binding per table."""
        audit = self._audit

        def handle(payload: dict) -> None:
            try:
                event = ChangeEvent.from_realtime_payload(payload)
            except ValueError as e:
                audit.log(SyncEventBuilder.realtime_event_ignored("?", f"unparseable payload: {e}"))
                return
            on_change(event)

        try:
            channel = self._client.channel(self._channel_name)
            for table in self._table_names.values():
                channel.on_postgres_changes(
                    event="*",
                    schema=self._schema,
                    table=table,
                    filter=f"user_id=eq.{self._user_id}",
                    callback=handle,
                )
            await channel.subscribe()
        except Exception as e:
            raise RemoteStoreError(f"Failed to open realtime channel: {e}") from e

        self._audit.log(SyncEventBuilder.subscription_opened(self._channel_name))
        return SupabaseSubscription(self._client, channel, self._channel_name, audit=self._audit)
