"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger core.
All data flowing between the synchronizer and the engines conforms to these schemas.
"""

from ledger.models.ledger import (
    Activity,
    Bucket,
    BudgetCycle,
    BudgetSummary,
    CategoryTotals,
    ColumnRole,
    ErrorKind,
    LedgerEntry,
    PacingStatus,
    Partition,
    PartitionRef,
    RefreshResult,
    SpreadsheetInfo,
    SyncError,
    SyncState,
)
from ledger.models.query import (
    DateRange,
    FilterOption,
    FlowTotals,
    QueryResult,
    QuerySpec,
    SortDirection,
    SortKey,
)

__all__ = [
    # Ledger models
    "Activity",
    "Bucket",
    "BudgetCycle",
    "BudgetSummary",
    "CategoryTotals",
    "ColumnRole",
    "ErrorKind",
    "LedgerEntry",
    "PacingStatus",
    "Partition",
    "PartitionRef",
    "RefreshResult",
    "SpreadsheetInfo",
    "SyncError",
    "SyncState",
    # Query models
    "DateRange",
    "FilterOption",
    "FlowTotals",
    "QueryResult",
    "QuerySpec",
    "SortDirection",
    "SortKey",
]
