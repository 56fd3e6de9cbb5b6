"""
Core Data Models for Monthly Ledger

These models define the schemas for everything held in the local cache
and exchanged with consumers (views, importers, backup files).
They are designed to:
1. Enforce the ledger invariants at construction time
2. Be immutable once published in a cache snapshot
3. Serialize to the backup file format without a separate mapping layer

DESIGN DECISION: All domain models are frozen. A consumer that wants to
edit a report builds a new one (model_copy(update=...)) and hands it to the
cache, which replaces the whole record. There is no field-level merge.
"""

from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


def new_item_id() -> str:
    """Generate an opaque unique id for an expense/income/calculator item."""
    return str(uuid4())


def format_month_key(year: int, month: int) -> str:
    """Format a (year, month) key as 'YYYY-MM'."""
    return f"{year:04d}-{month:02d}"


def parse_month_key(value: str) -> tuple[int, int]:
    """
    Parse a 'YYYY-MM' string into a (year, month) key.

    Raises:
        ValueError: If the string is not a valid month key
    """
    try:
        year_str, month_str = value.strip().split("-", 1)
        year, month = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid month key: {value!r} (expected YYYY-MM)")
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in key {value!r}")
    return year, month


def _zero_if_missing(value: Any) -> Any:
    return 0 if value is None or value == "" else value


def _text_or_empty(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return value


# =============================================================================
# LINE ITEMS
# =============================================================================

class _LineItem(BaseModel):
    """Fields shared by every ordered, id-carrying entry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(
        default="",
        description="Opaque unique id, assigned by the cache when empty"
    )
    description: str = Field(
        default="",
        description="Free-form label"
    )

    @field_validator('id', 'description', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _text_or_empty(v)

    def with_id(self):
        """Return self, or a copy carrying a fresh id if this item has none."""
        if self.id:
            return self
        return self.model_copy(update={"id": new_item_id()})


class Income(_LineItem):
    """A single extra income entry for a month."""

    amount: float = Field(
        default=0.0,
        ge=0,
        description="Amount received"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def default_amount(cls, v: Any) -> Any:
        return _zero_if_missing(v)


class Expense(_LineItem):
    """
    A single expense entry for a month.

    A shared expense is one split with someone else: `amount` is the user's
    half and `total_amount` is the full bill. `total_amount` is derived and
    cannot be set independently.
    """

    amount: float = Field(
        default=0.0,
        ge=0,
        description="Amount paid by the user"
    )
    shared: bool = Field(
        default=False,
        description="Expense is split 50/50"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def default_amount(cls, v: Any) -> Any:
        return _zero_if_missing(v)

    @field_validator('shared', mode='before')
    @classmethod
    def default_shared(cls, v: Any) -> Any:
        return False if v is None else v

    @computed_field(alias="totalAmount")
    @property
    def total_amount(self) -> float:
        return self.amount * 2 if self.shared else self.amount


class CalculatorItem(_LineItem):
    """An entry of the quick calculator widget."""

    amount: float = Field(
        default=0.0,
        description="Signed amount"
    )
    color: Optional[str] = Field(
        default=None,
        description="Display hint"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def default_amount(cls, v: Any) -> Any:
        return _zero_if_missing(v)


def assign_missing_ids(items):
    """
    Give every line item a unique id, keeping order.

    Missing ids are generated. A repeated id keeps its first occurrence;
    later items carrying it get a fresh id. Items that are already unique
    are returned unchanged.
    """
    seen: set[str] = set()
    assigned = []
    for item in items:
        if item.id in seen:
            item = item.model_copy(update={"id": new_item_id()})
        else:
            item = item.with_id()
        seen.add(item.id)
        assigned.append(item)
    return tuple(assigned)


# =============================================================================
# MONTHLY REPORT
# =============================================================================

class MonthlyReport(BaseModel):
    """
    The ledger for one calendar month, keyed by (year, month).

    `balance` is the account balance snapshot taken on `payday`.
    An empty `payday` means the month is still open.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    year: int = Field(
        ...,
        ge=1,
        le=9999,
        description="Calendar year"
    )
    month: int = Field(
        ...,
        ge=1,
        le=12,
        description="Calendar month (1 = January)"
    )
    payday: str = Field(
        default="",
        description="Payday date (YYYY-MM-DD), empty until set"
    )
    balance: float = Field(
        default=0.0,
        description="Account balance on payday"
    )
    salary: float = 0.0
    salary13: float = Field(
        default=0.0,
        description="Thirteenth month salary"
    )
    salary14: float = Field(
        default=0.0,
        description="Fourteenth month salary"
    )
    incomes: tuple[Income, ...] = ()
    expenses: tuple[Expense, ...] = ()
    notes: str = ""

    @field_validator('balance', 'salary', 'salary13', 'salary14', mode='before')
    @classmethod
    def default_numbers(cls, v: Any) -> Any:
        return _zero_if_missing(v)

    @field_validator('payday', 'notes', mode='before')
    @classmethod
    def default_text(cls, v: Any) -> Any:
        return _text_or_empty(v)

    @field_validator('incomes', 'expenses', mode='before')
    @classmethod
    def default_collections(cls, v: Any) -> Any:
        return () if v is None else v

    @classmethod
    def empty(cls, year: int, month: int) -> "MonthlyReport":
        """Default zero-value record for a month that has no row yet."""
        return cls(year=year, month=month)

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def month_key(self) -> str:
        return format_month_key(self.year, self.month)

    @property
    def is_complete(self) -> bool:
        """A month is complete once its payday has been recorded."""
        return bool(self.payday)

    def with_item_ids(self) -> "MonthlyReport":
        """Return a copy where every income and expense carries an id."""
        incomes = assign_missing_ids(self.incomes)
        expenses = assign_missing_ids(self.expenses)
        if incomes == self.incomes and expenses == self.expenses:
            return self
        return self.model_copy(update={"incomes": incomes, "expenses": expenses})


# =============================================================================
# FULL SNAPSHOT
# =============================================================================

class AppData(BaseModel):
    """
    The full ledger snapshot.

    This is both the cache state and the backup file format.
    `reports` is ordered most recent month first.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    reports: tuple[MonthlyReport, ...] = ()
    global_notes: str = Field(
        default="",
        alias="globalNotes"
    )
    calculator_items: tuple[CalculatorItem, ...] = Field(
        default=(),
        alias="calculatorItems"
    )

    @field_validator('reports', 'calculator_items', mode='before')
    @classmethod
    def default_collections(cls, v: Any) -> Any:
        return () if v is None else v

    @field_validator('global_notes', mode='before')
    @classmethod
    def default_notes(cls, v: Any) -> Any:
        return _text_or_empty(v)

    def to_backup_dict(self) -> dict:
        """Serialize using the backup file field names."""
        return self.model_dump(mode="json", by_alias=True)
