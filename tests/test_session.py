"""
Tests for sessions and the session manager (mode switching).
"""

import logging
from types import SimpleNamespace

import pytest

from ledger.audit import configure_logging
from ledger.config import AppSettings, SupabaseSettings
from ledger.models.audit import SyncEventType
from ledger.models.ledger import AppData, MonthlyReport
from ledger.models.remote import ChangeEvent
from ledger.orchestrator import (
    SessionError,
    SessionManager,
    SessionMode,
    create_authenticated_session,
    create_guest_session,
)
from ledger.services.storage import AuthenticationError
from ledger.validation import MalformedBackupError


class TestAuthenticatedSession:
    """Tests for remote-backed sessions."""

    @pytest.mark.asyncio
    async def test_start_loads_and_subscribes(self, store, audit):
        """Test initial load and realtime subscription."""
        store.data = AppData(reports=[MonthlyReport(year=2024, month=1)], global_notes="n")
        session = create_authenticated_session(store, audit=audit)

        await session.start()

        assert session.is_open is True
        assert session.is_live is True
        assert session.cache.global_notes == "n"
        assert len(session.cache.reports) == 1
        assert len(store.subscriptions) == 1
        assert len(audit.of_type(SyncEventType.SESSION_STARTED)) == 1

    @pytest.mark.asyncio
    async def test_load_failure_keeps_empty_cache(self, store, audit):
        """Test that a failed load is not fatal."""
        store.fail_load = True
        session = create_authenticated_session(store, audit=audit)

        await session.start()

        assert session.is_open is True
        assert session.cache.snapshot == AppData()
        assert len(audit.of_type(SyncEventType.REMOTE_LOAD_FAILED)) == 1

    @pytest.mark.asyncio
    async def test_subscription_failure_not_fatal(self, store):
        """Test that the session runs without realtime if the channel fails."""
        store.fail_subscribe = True
        session = create_authenticated_session(store)

        await session.start()

        assert session.is_open is True
        assert session.is_live is False

    @pytest.mark.asyncio
    async def test_realtime_events_reach_cache(self, store):
        """Test that events from the subscription are folded."""
        session = create_authenticated_session(store)
        await session.start()

        store.subscriptions[0].on_change(ChangeEvent(
            table="monthly_reports",
            event_type="INSERT",
            new_row={"year": 2024, "month": 8, "salary": 10},
        ))
        await session.reconciler.drain()

        assert session.cache.get_report(2024, 8).salary == 10

    @pytest.mark.asyncio
    async def test_close_tears_down(self, store, audit):
        """Test that close unsubscribes, flushes writes and clears the cache."""
        session = create_authenticated_session(store, audit=audit)
        await session.start()
        session.cache.update_report(MonthlyReport(year=2024, month=2))

        await session.close()

        assert store.subscriptions[0].close_calls == 1
        assert len(store.report_writes) == 1
        assert session.cache.snapshot == AppData()
        assert session.is_open is False
        assert len(audit.of_type(SyncEventType.SESSION_CLOSED)) == 1

    @pytest.mark.asyncio
    async def test_closed_session_cannot_restart(self, store):
        """Test that a closed session is final."""
        session = create_authenticated_session(store)
        await session.start()
        await session.close()

        with pytest.raises(SessionError):
            await session.start()

    @pytest.mark.asyncio
    async def test_context_manager(self, store):
        """Test async with start/close."""
        async with create_authenticated_session(store) as session:
            assert session.is_open
        assert store.subscriptions[0].close_calls == 1


class TestGuestSession:
    """Tests for guest sessions."""

    @pytest.mark.asyncio
    async def test_guest_has_no_subscription(self):
        """Test that a guest session never opens a channel."""
        session = await create_guest_session().start()
        assert session.mode == SessionMode.GUEST
        assert session.is_live is False
        assert session.cache.snapshot == AppData()

    @pytest.mark.asyncio
    async def test_guest_writes_succeed_locally(self):
        """Test that the mutation API works without a backend."""
        session = await create_guest_session().start()

        assert await session.cache.update_report(MonthlyReport(year=2024, month=3)) is True
        assert await session.cache.update_global_notes("guest notes") is True
        assert session.cache.get_report(2024, 3) is not None

    @pytest.mark.asyncio
    async def test_guest_reload_keeps_own_state(self):
        """Test that a reload in guest mode returns the guest's own data."""
        session = await create_guest_session().start()
        await session.cache.update_report(MonthlyReport(year=2024, month=3))

        assert await session.reconciler.reload() is True
        assert [r.key for r in session.cache.reports] == [(2024, 3)]

    @pytest.mark.asyncio
    async def test_restore_backup_text(self, audit):
        """Test restoring a backup document into a session."""
        session = await create_guest_session(audit=audit).start()

        result = await session.restore_backup_text(
            '{"reports": [{"year": 2024, "month": 1}], "globalNotes": "hi"}'
        )

        assert result.attempted == 1
        assert session.cache.global_notes == "hi"

    @pytest.mark.asyncio
    async def test_malformed_backup_changes_nothing(self, audit):
        """Test that a bad backup is rejected before any mutation."""
        session = await create_guest_session(audit=audit).start()
        version = session.cache.version

        with pytest.raises(MalformedBackupError):
            await session.restore_backup_text('{"reports": "nope"}')

        assert session.cache.version == version
        assert len(audit.of_type(SyncEventType.BACKUP_REJECTED)) == 1

    @pytest.mark.asyncio
    async def test_restore_requires_open_session(self):
        """Test that a session must be started first."""
        with pytest.raises(SessionError):
            await create_guest_session().restore_backup_text("{}")


class FakeAuth:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sign_out_calls = 0

    async def sign_in_with_password(self, credentials):
        if self.fail:
            raise RuntimeError("invalid credentials")
        return SimpleNamespace(user=SimpleNamespace(id="user-1"))

    async def set_session(self, access_token, refresh_token):
        return SimpleNamespace(user=SimpleNamespace(id="user-2"))

    async def sign_out(self):
        self.sign_out_calls += 1


def _manager(store, auth: FakeAuth, user_ids: list) -> SessionManager:
    client = SimpleNamespace(auth=auth)

    async def client_factory(settings):
        return client

    def store_factory(client, user_id, settings):
        user_ids.append(user_id)
        return store

    return SessionManager(
        settings=SupabaseSettings(url="https://example.supabase.co", key="anon"),
        client_factory=client_factory,
        store_factory=store_factory,
        app_settings=AppSettings(),
    )


class TestSessionManager:
    """Tests for mode transitions."""

    @pytest.mark.asyncio
    async def test_sign_in_with_password(self, store):
        """Test that sign-in starts an authenticated session for the user."""
        user_ids = []
        manager = _manager(store, FakeAuth(), user_ids)

        session = await manager.sign_in_with_password("a@b.c", "secret")

        assert session.mode == SessionMode.AUTHENTICATED
        assert manager.session is session
        assert user_ids == ["user-1"]
        assert store.load_calls == 1

    @pytest.mark.asyncio
    async def test_restore_auth_session(self, store):
        """Test resuming an existing auth session."""
        user_ids = []
        manager = _manager(store, FakeAuth(), user_ids)

        await manager.restore_auth_session("access", "refresh")

        assert user_ids == ["user-2"]

    @pytest.mark.asyncio
    async def test_failed_sign_in(self, store):
        """Test that bad credentials leave no session."""
        manager = _manager(store, FakeAuth(fail=True), [])

        with pytest.raises(AuthenticationError):
            await manager.sign_in_with_password("a@b.c", "wrong")
        assert manager.session is None

    @pytest.mark.asyncio
    async def test_missing_credentials(self, store):
        """Test that empty credentials are refused before any call."""
        manager = _manager(store, FakeAuth(), [])
        with pytest.raises(SessionError):
            await manager.sign_in_with_password("", "secret")

    @pytest.mark.asyncio
    async def test_switch_to_guest_closes_previous(self, store):
        """Test that the authenticated session is torn down first."""
        manager = _manager(store, FakeAuth(), [])
        authenticated = await manager.sign_in_with_password("a@b.c", "secret")

        guest = await manager.sign_in_as_guest()

        assert authenticated.is_open is False
        assert store.subscriptions[0].close_calls == 1
        assert manager.is_guest is True
        assert guest.cache.snapshot == AppData()

    @pytest.mark.asyncio
    async def test_sign_out_authenticated(self, store):
        """Test that sign-out closes the session and ends the auth session."""
        auth = FakeAuth()
        manager = _manager(store, auth, [])
        session = await manager.sign_in_with_password("a@b.c", "secret")

        await manager.sign_out()

        assert manager.session is None
        assert session.is_open is False
        assert auth.sign_out_calls == 1

    @pytest.mark.asyncio
    async def test_sign_out_guest_skips_auth(self, store):
        """Test that guests never call the auth backend."""
        auth = FakeAuth()
        manager = _manager(store, auth, [])
        await manager.sign_in_as_guest()

        await manager.sign_out()

        assert manager.session is None
        assert auth.sign_out_calls == 0

    def test_manager_applies_log_level(self):
        """Test that the configured log level reaches the root logger."""
        root = logging.getLogger()
        previous = root.level
        try:
            SessionManager(app_settings=AppSettings(log_level="warning", log_json=False))
            assert root.level == logging.WARNING
        finally:
            configure_logging()
            root.setLevel(previous)
