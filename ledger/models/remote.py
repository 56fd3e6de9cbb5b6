"""
Remote Row and Change Event Models

These describe data as the remote store ships it: flat rows with
snake_case columns and nullable numerics, and realtime change
notifications wrapping those rows.

CRITICAL: Nothing in here is a domain value. Rows are turned into
MonthlyReport / notes / calculator items only by the Reconciler.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceKind(str, Enum):
    """The three resources a user owns in the remote store."""
    REPORTS = "reports"
    NOTES = "notes"
    CALCULATOR = "calculator"


class ChangeType(str, Enum):
    """Row-level change kinds delivered by the realtime channel."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


# =============================================================================
# ROWS
# =============================================================================

class MonthlyReportRow(BaseModel):
    """A row of the monthly_reports table."""

    model_config = ConfigDict(extra="ignore")

    user_id: Optional[str] = None
    year: int
    month: int
    payday: Optional[str] = None
    balance: Optional[float] = None
    salary: Optional[float] = None
    salary_13: Optional[float] = None
    salary_14: Optional[float] = None
    incomes: Optional[list[dict[str, Any]]] = None
    expenses: Optional[list[dict[str, Any]]] = None
    notes: Optional[str] = None


class GlobalNotesRow(BaseModel):
    """A row of the global_notes table (one per user)."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return None if v is None else str(v)


class CalculatorDataRow(BaseModel):
    """A row of the calculator_data table (one per user)."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    items: Optional[list[dict[str, Any]]] = None

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return None if v is None else str(v)


# =============================================================================
# CHANGE EVENTS
# =============================================================================

class ChangeEvent(BaseModel):
    """
    A single row-level change delivered by the realtime channel.

    Events can also be built directly, which is how tests inject
    synthetic remote changes.
    """

    model_config = ConfigDict(frozen=True)

    table: str = Field(
        ...,
        description="Remote table the change happened in"
    )
    event_type: ChangeType
    new_row: dict[str, Any] = Field(default_factory=dict)
    old_row: dict[str, Any] = Field(default_factory=dict)

    @field_validator('event_type', mode='before')
    @classmethod
    def normalize_event_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('new_row', 'old_row', mode='before')
    @classmethod
    def default_row(cls, v: Any) -> Any:
        return v or {}

    @classmethod
    def from_realtime_payload(cls, payload: dict[str, Any]) -> "ChangeEvent":
        """
        Build an event from a realtime postgres_changes payload.

        Two payload shapes are accepted:
        - raw server shape: {"data": {"table", "type", "record", "old_record"}, "ids": [...]}
        - client shape:     {"table", "eventType", "new", "old"}

        Raises:
            ValueError: If the payload matches neither shape
        """
        data = payload.get("data") if isinstance(payload.get("data"), dict) else None
        if data is not None:
            return cls(
                table=data.get("table", ""),
                event_type=data.get("type") or data.get("eventType"),
                new_row=data.get("record"),
                old_row=data.get("old_record"),
            )
        if "eventType" in payload:
            return cls(
                table=payload.get("table", ""),
                event_type=payload["eventType"],
                new_row=payload.get("new"),
                old_row=payload.get("old"),
            )
        raise ValueError(f"Unrecognized realtime payload keys: {sorted(payload)}")
