"""
Core Data Models for Household Ledger

These models define the shapes flowing between the synchronizer and the
engines. They are designed to:
1. Be immutable - engines receive snapshots they cannot change
2. Tolerate ragged spreadsheet rows (missing trailing cells read as "")
3. Keep derived figures derived (computed properties, never stored)

DESIGN DECISION: Partitions are frozen pydantic models holding tuples.
The synchronizer replaces cache entries wholesale, so a reader holding an
old Partition never sees it change underneath it.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ColumnRole(str, Enum):
    """
    Semantic role of a ledger column, inferred from its header text.

    Never stored - recomputed from headers whenever needed.
    """
    DATE = "date"
    ELEMENT = "element"
    CATEGORY = "category"
    SUMMARY = "summary"
    AMOUNT = "amount"
    MEMO = "memo"
    NONE = "none"


class Bucket(str, Enum):
    """
    Fixed taxonomy the free-text category labels are folded into.

    A label may fall into several buckets at once (e.g. "기타 여행 지출");
    see ledger.classifier.
    """
    LIVING_EXPENSE = "living_expense"
    FIXED_EXPENSE = "fixed_expense"
    OTHER_EXPENSE = "other_expense"
    TRAVEL_EXPENSE = "travel_expense"
    SAVINGS = "savings"
    PAYMENT = "payment"
    INCOME = "income"
    UNCATEGORIZED = "uncategorized"


class PacingStatus(str, Enum):
    """How living-expense usage compares to the elapsed share of the cycle."""
    ON_TRACK = "on_track"
    AHEAD_OF_PACE = "ahead_of_pace"   # spending faster than the calendar
    OVER_BUDGET = "over_budget"


class SyncState(str, Enum):
    """Lifecycle of the partition synchronizer."""
    UNINITIALIZED = "uninitialized"
    LOADING_METADATA = "loading_metadata"
    ACCESS_DENIED = "access_denied"
    READY = "ready"


class Activity(str, Enum):
    """What a READY synchronizer is currently doing."""
    IDLE = "idle"
    REFRESHING_SELECTED = "refreshing_selected"
    REFRESHING_ALL = "refreshing_all"


class ErrorKind(str, Enum):
    """Error categories surfaced by the synchronizer."""
    ACCESS_DENIED = "access_denied"   # terminal for the session
    SCOPE = "scope"                   # re-authenticate, do not retry
    NETWORK = "network"               # recoverable, retry via refresh
    PARTIAL = "partial"               # one partition failed in a bulk load


# =============================================================================
# SPREADSHEET SHAPES
# =============================================================================

class PartitionRef(BaseModel):
    """A worksheet as listed in the spreadsheet metadata."""
    model_config = ConfigDict(frozen=True)

    sheet_id: int = Field(..., description="Numeric worksheet ID")
    title: str = Field(..., description="Worksheet title, e.g. '2024년 3월'")


class SpreadsheetInfo(BaseModel):
    """Spreadsheet metadata: document title plus its worksheets."""
    model_config = ConfigDict(frozen=True)

    title: str
    sheets: tuple[PartitionRef, ...] = ()


class Partition(BaseModel):
    """
    One month of ledger rows.

    Rows are aligned positionally with headers but may be shorter or
    longer than the header row; use cell() to read defensively.
    """
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Partition title, unique cache key")
    headers: tuple[str, ...] = Field(
        default=(),
        description="Header cells; blanks are legal"
    )
    rows: tuple[tuple[str, ...], ...] = Field(
        default=(),
        description="Data rows below the header row"
    )

    @field_validator("headers", mode="before")
    @classmethod
    def coerce_headers(cls, v):
        return tuple("" if cell is None else str(cell) for cell in (v or ()))

    @field_validator("rows", mode="before")
    @classmethod
    def coerce_rows(cls, v):
        return tuple(
            tuple("" if cell is None else str(cell) for cell in (row or ()))
            for row in (v or ())
        )

    @staticmethod
    def cell(row: tuple[str, ...], index: int) -> str:
        """Read a cell, treating missing cells as empty."""
        if index < 0 or index >= len(row):
            return ""
        return row[index]

    @property
    def is_empty(self) -> bool:
        return not self.rows


class LedgerEntry(BaseModel):
    """
    A new ledger row to append to a monthly worksheet.

    Serialised to the sheet's A..G layout; column F is left blank.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    entry_date: date = Field(..., description="Transaction date")
    element: str = Field(default="", max_length=200, description="Item, e.g. '라면'")
    category: str = Field(..., min_length=1, max_length=100, description="Category label")
    summary: str = Field(default="", max_length=200, description="Where / short summary")
    amount: Optional[Decimal] = Field(default=None, description="Amount in KRW")
    memo: str = Field(default="", max_length=500, description="Free-form memo")

    def to_row(self) -> list[str]:
        """Render as sheet cells: [date, element, category, summary, amount, '', memo]."""
        d = self.entry_date
        amount = "" if self.amount is None else format(self.amount.normalize(), "f")
        return [
            f"{d.year}. {d.month}. {d.day}",
            self.element,
            self.category,
            self.summary,
            amount,
            "",
            self.memo,
        ]


# =============================================================================
# BUDGET MODELS
# =============================================================================

class BudgetCycle(BaseModel):
    """
    The 25th-to-24th budgeting window for a selected month.

    Recomputed from (selected label, now) on demand; never persisted.
    """
    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    total_days: int = Field(..., ge=0)
    elapsed_days: int = Field(..., ge=0)
    remaining_days: int = Field(..., ge=1)
    ideal_percent: int = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def validate_window(self) -> "BudgetCycle":
        if self.end < self.start:
            raise ValueError("Budget cycle end cannot be before start")
        if self.elapsed_days > self.total_days:
            raise ValueError("Elapsed days cannot exceed total days")
        return self

    @property
    def label(self) -> str:
        """Window as shown to the user, e.g. '2/25 ~ 3/24'."""
        return (
            f"{self.start.month}/{self.start.day} ~ "
            f"{self.end.month}/{self.end.day}"
        )


class CategoryTotals(BaseModel):
    """
    Sums per bucket plus the raw per-label totals they were built from.

    Amounts are absolute values; the sign in the sheet is ignored.
    """
    model_config = ConfigDict(frozen=True)

    by_label: dict[str, Decimal] = Field(default_factory=dict)
    living_expense: Decimal = Decimal(0)
    fixed_expense: Decimal = Decimal(0)
    other_expense: Decimal = Decimal(0)
    travel_expense: Decimal = Decimal(0)
    savings: Decimal = Decimal(0)
    payments: Decimal = Decimal(0)
    total_income: Decimal = Decimal(0)
    uncategorized: Decimal = Decimal(0)

    def bucket_total(self, bucket: Bucket) -> Decimal:
        return {
            Bucket.LIVING_EXPENSE: self.living_expense,
            Bucket.FIXED_EXPENSE: self.fixed_expense,
            Bucket.OTHER_EXPENSE: self.other_expense,
            Bucket.TRAVEL_EXPENSE: self.travel_expense,
            Bucket.SAVINGS: self.savings,
            Bucket.PAYMENT: self.payments,
            Bucket.INCOME: self.total_income,
            Bucket.UNCATEGORIZED: self.uncategorized,
        }[bucket]

    @property
    def total_expense(self) -> Decimal:
        return (
            self.living_expense
            + self.fixed_expense
            + self.other_expense
            + self.travel_expense
        )

    @property
    def actual_remaining(self) -> Decimal:
        """Income left after every expense bucket and savings."""
        return self.total_income - self.total_expense - self.savings


class BudgetSummary(BaseModel):
    """Period-relative figures derived from totals, a budget and a cycle."""
    model_config = ConfigDict(frozen=True)

    total_budget: Decimal
    living_expense: Decimal
    remaining_budget: Decimal
    daily_budget: int
    usage_percent: int
    ideal_percent: int
    remaining_days: int
    actual_remaining: Decimal
    status: PacingStatus
    fixed_expense_variance: Optional[Decimal] = None


# =============================================================================
# SYNC RESULTS
# =============================================================================

class SyncError(BaseModel):
    """A remote failure converted to state at the synchronizer boundary."""
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    partition: Optional[str] = None

    @property
    def requires_reauth(self) -> bool:
        return self.kind == ErrorKind.SCOPE


class RefreshResult(BaseModel):
    """Outcome of a refresh operation."""
    model_config = ConfigDict(frozen=True)

    ok: bool
    loaded: tuple[str, ...] = ()
    discarded: tuple[str, ...] = ()
    errors: tuple[SyncError, ...] = ()
