"""Partition synchronization package."""

from ledger.sync.store import PartitionBudget, PartitionStore
from ledger.sync.synchronizer import (
    PartitionSynchronizer,
    default_selection,
    monthly_partitions,
    to_sync_error,
)

__all__ = [
    "PartitionBudget",
    "PartitionStore",
    "PartitionSynchronizer",
    "default_selection",
    "monthly_partitions",
    "to_sync_error",
]
