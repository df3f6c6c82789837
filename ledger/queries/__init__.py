"""Tabular query package."""

from ledger.queries.engine import (
    COMBINED_TITLE,
    QueryEngine,
    combine_partitions,
    value_suggestions,
)

__all__ = [
    "COMBINED_TITLE",
    "QueryEngine",
    "combine_partitions",
    "value_suggestions",
]
