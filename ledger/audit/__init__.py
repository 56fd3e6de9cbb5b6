"""Sync audit logging package."""

from ledger.audit.logger import SyncAuditLogger, configure_logging

__all__ = ["SyncAuditLogger", "configure_logging"]
