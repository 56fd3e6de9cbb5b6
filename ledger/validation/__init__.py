"""Backup validation package."""

from ledger.validation.backup import MalformedBackupError, export_backup, parse_backup

__all__ = ["MalformedBackupError", "export_backup", "parse_backup"]
