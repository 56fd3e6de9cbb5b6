"""
Backup File Validation

DESIGN DECISION: A backup is validated COMPLETELY before anything is
applied. parse_backup either returns a fully-formed AppData or raises
MalformedBackupError; the cache is never touched by a bad file.

What is checked:
- The text is valid JSON
- The document is an object
- `reports` / `calculatorItems` are arrays when present
- Every report has an integer year and a month in 1..12, amounts are
  non-negative, expenses/incomes are arrays of objects

What is NOT checked (defaults are applied instead):
- Missing numeric fields (become 0)
- Missing ids (assigned by the cache on import)
- Missing globalNotes (becomes "")
"""

import json
from typing import Optional

from pydantic import ValidationError

from ledger.models.ledger import AppData


class MalformedBackupError(ValueError):
    """The backup file is not valid JSON or does not have the AppData shape."""

    def __init__(self, message: str, issues: Optional[list[str]] = None):
        super().__init__(message)
        self.issues = issues or []


def _describe(error: ValidationError) -> list[str]:
    issues = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        issues.append(f"{location}: {item['msg']}")
    return issues


def parse_backup(text: str) -> AppData:
    """
    Parse and validate a backup document.

    Raises:
        MalformedBackupError: On invalid JSON or a wrong shape
    """
    try:
        document = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedBackupError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedBackupError(
            f"Backup must be a JSON object, got {type(document).__name__}"
        )

    for field in ("reports", "calculatorItems"):
        value = document.get(field)
        if value is not None and not isinstance(value, list):
            raise MalformedBackupError(f"Backup field {field!r} must be an array")

    try:
        return AppData.model_validate(document)
    except ValidationError as e:
        issues = _describe(e)
        raise MalformedBackupError(
            f"Backup has {len(issues)} invalid field(s)",
            issues=issues,
        ) from e


def export_backup(data: AppData) -> str:
    """Serialize a snapshot to the backup file format (indented JSON)."""
    return json.dumps(data.to_backup_dict(), indent=2, ensure_ascii=False)
