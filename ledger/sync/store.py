"""
Partition Store

The single shared table of partitions for a session, plus the budget
figures read from each partition's summary block.

Only the synchronizer writes here, and only by replacing whole entries.
Everyone else reads through snapshot(), a read-only mapping over frozen
Partition objects, so a snapshot taken before a refresh keeps showing
the data it was taken from.
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from ledger.models.ledger import Partition


class PartitionBudget(BaseModel):
    """Budget cells of one monthly partition."""
    model_config = ConfigDict(frozen=True)

    total_budget: Decimal = Decimal(0)
    fixed_budget: Optional[Decimal] = None


class PartitionStore:
    """Session-scoped cache keyed by partition title. Last write wins."""

    def __init__(self):
        self._partitions: dict[str, Partition] = {}
        self._budgets: dict[str, PartitionBudget] = {}

    def put(self, partition: Partition) -> None:
        self._partitions[partition.title] = partition

    def get(self, title: Optional[str]) -> Optional[Partition]:
        if title is None:
            return None
        return self._partitions.get(title)

    def put_budget(self, title: str, budget: PartitionBudget) -> None:
        self._budgets[title] = budget

    def budget(self, title: Optional[str]) -> PartitionBudget:
        if title is None:
            return PartitionBudget()
        return self._budgets.get(title, PartitionBudget())

    def snapshot(self) -> Mapping[str, Partition]:
        """Read-only copy of the current title -> partition table."""
        return MappingProxyType(dict(self._partitions))

    def clear(self) -> None:
        self._partitions.clear()
        self._budgets.clear()

    def __contains__(self, title: object) -> bool:
        return title in self._partitions

    def __len__(self) -> int:
        return len(self._partitions)
