"""
Sync Audit Models for Monthly Ledger

Every significant step of the cache/remote reconciliation is described
by a SyncEvent. This provides:
1. Traceability of optimistic updates and their remote outcome
2. Debugging information when local and remote state diverge
3. One place where log field names are defined

DESIGN DECISION: Events are only logged, never persisted remotely.
A failed remote write must stay visible even when the remote is down.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class SyncEventType(str, Enum):
    """
    Kinds of sync events.

    Each stage of the optimistic-update / reconciliation cycle has its own type.
    """
    # Local cache
    LOCAL_UPDATE_APPLIED = "local_update_applied"
    CACHE_RESET = "cache_reset"
    LISTENER_FAILED = "listener_failed"

    # Remote writes
    REMOTE_WRITE_SUCCEEDED = "remote_write_succeeded"
    REMOTE_WRITE_FAILED = "remote_write_failed"

    # Remote reads
    REMOTE_LOAD_COMPLETED = "remote_load_completed"
    REMOTE_LOAD_FAILED = "remote_load_failed"

    # Realtime
    REALTIME_EVENT_FOLDED = "realtime_event_folded"
    REALTIME_EVENT_IGNORED = "realtime_event_ignored"
    FULL_RELOAD_TRIGGERED = "full_reload_triggered"
    SUBSCRIPTION_OPENED = "subscription_opened"
    SUBSCRIPTION_CLOSED = "subscription_closed"

    # Bulk operations
    IMPORT_COMPLETED = "import_completed"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"

    # Session
    SESSION_STARTED = "session_started"
    SESSION_CLOSED = "session_closed"


class SyncSeverity(str, Enum):
    """Severity level for sync events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SyncEvent(BaseModel):
    """
    A single sync event.

    This is the core unit of the sync audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Random event id (uuid4)"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: SyncEventType
    severity: SyncSeverity = SyncSeverity.INFO

    # What resource is this about?
    resource: Optional[str] = Field(
        default=None,
        description="reports, notes or calculator"
    )
    key: Optional[str] = Field(
        default=None,
        description="Month key (YYYY-MM) for report events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Flatten into keyword arguments for a structlog call.
        """
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "resource": self.resource,
            "key": self.key,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class SyncEventBuilder:
    """
    Helper class to build sync events with common patterns.

    Usage:
        event = SyncEventBuilder.local_update("reports", key="2024-03")
        event = SyncEventBuilder.remote_write_failed("notes", None, str(error))
    """

    @staticmethod
    def local_update(resource: str, key: Optional[str] = None, version: int = 0) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LOCAL_UPDATE_APPLIED,
            severity=SyncSeverity.DEBUG,
            resource=resource,
            key=key,
            description=f"Optimistic update applied to {resource}",
            details={"version": version},
        )

    @staticmethod
    def cache_reset() -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.CACHE_RESET,
            description="Cache cleared to empty defaults",
        )

    @staticmethod
    def listener_failed(version: int, error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.LISTENER_FAILED,
            severity=SyncSeverity.ERROR,
            description="Snapshot listener raised, remaining listeners still notified",
            details={"version": version},
            error_message=error_message,
        )

    @staticmethod
    def remote_write_succeeded(resource: str, key: Optional[str] = None) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REMOTE_WRITE_SUCCEEDED,
            severity=SyncSeverity.DEBUG,
            resource=resource,
            key=key,
            description=f"Remote write for {resource} succeeded",
        )

    @staticmethod
    def remote_write_failed(
        resource: str,
        key: Optional[str],
        error_message: str,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REMOTE_WRITE_FAILED,
            severity=SyncSeverity.ERROR,
            resource=resource,
            key=key,
            description=f"Remote write for {resource} failed, local state kept",
            error_message=error_message,
        )

    @staticmethod
    def remote_load_completed(report_count: int, calculator_count: int) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REMOTE_LOAD_COMPLETED,
            description=f"Loaded {report_count} reports from remote store",
            details={
                "report_count": report_count,
                "calculator_item_count": calculator_count,
            },
        )

    @staticmethod
    def remote_load_failed(error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REMOTE_LOAD_FAILED,
            severity=SyncSeverity.ERROR,
            description="Remote load failed",
            error_message=error_message,
        )

    @staticmethod
    def realtime_event_folded(resource: str, change: str, key: Optional[str] = None) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REALTIME_EVENT_FOLDED,
            severity=SyncSeverity.DEBUG,
            resource=resource,
            key=key,
            description=f"Realtime {change} folded into {resource}",
            details={"change": change},
        )

    @staticmethod
    def realtime_event_ignored(table: str, reason: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.REALTIME_EVENT_IGNORED,
            severity=SyncSeverity.WARNING,
            description=f"Realtime event on {table!r} ignored",
            details={"table": table, "reason": reason},
        )

    @staticmethod
    def full_reload_triggered(resource: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.FULL_RELOAD_TRIGGERED,
            resource=resource,
            description=f"Remote delete on {resource}, reloading everything",
        )

    @staticmethod
    def subscription_opened(channel: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SUBSCRIPTION_OPENED,
            description=f"Realtime channel {channel} opened",
            details={"channel": channel},
        )

    @staticmethod
    def subscription_closed(channel: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SUBSCRIPTION_CLOSED,
            description=f"Realtime channel {channel} closed",
            details={"channel": channel},
        )

    @staticmethod
    def import_completed(attempted: int, failed: list[str]) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.IMPORT_COMPLETED,
            severity=SyncSeverity.WARNING if failed else SyncSeverity.INFO,
            resource="reports",
            description=f"Imported {attempted} reports ({len(failed)} not persisted)",
            details={
                "attempted": attempted,
                "failed_keys": failed,
            },
        )

    @staticmethod
    def backup_restored(report_count: int) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.BACKUP_RESTORED,
            description=f"Backup restored with {report_count} reports",
            details={"report_count": report_count},
        )

    @staticmethod
    def backup_rejected(error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.BACKUP_REJECTED,
            severity=SyncSeverity.WARNING,
            description="Backup file rejected before any change was applied",
            error_message=error_message,
        )

    @staticmethod
    def session_started(mode: str, report_count: int) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SESSION_STARTED,
            description=f"{mode.capitalize()} session started",
            details={"mode": mode, "report_count": report_count},
        )

    @staticmethod
    def session_closed(mode: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SESSION_CLOSED,
            description=f"{mode.capitalize()} session closed",
            details={"mode": mode},
        )
