"""
Aggregation Engine

Turns ledger rows into category totals and the budget summary figures.

GUARANTEES:
- Pure: partitions are read, never modified
- Rows with a blank label or an unreadable amount are skipped; they never
  affect other rows' contributions
- Every derived figure is recomputed from its inputs on each call
"""

import math
from collections import defaultdict
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

from ledger.classifier import matching_buckets
from ledger.columns import amount_column, category_column
from ledger.cycle import compute_cycle
from ledger.models.ledger import (
    Bucket,
    BudgetCycle,
    BudgetSummary,
    CategoryTotals,
    PacingStatus,
    Partition,
)
from ledger.parsing import parse_amount, parse_partition_label, percent


Classifier = Callable[[str], tuple[Bucket, ...]]

_BUCKET_FIELDS = {
    Bucket.LIVING_EXPENSE: "living_expense",
    Bucket.FIXED_EXPENSE: "fixed_expense",
    Bucket.OTHER_EXPENSE: "other_expense",
    Bucket.TRAVEL_EXPENSE: "travel_expense",
    Bucket.SAVINGS: "savings",
    Bucket.PAYMENT: "payments",
    Bucket.INCOME: "total_income",
    Bucket.UNCATEGORIZED: "uncategorized",
}


def _as_partitions(source: Union[Partition, Iterable[Partition], None]) -> list[Partition]:
    if source is None:
        return []
    if isinstance(source, Partition):
        return [source]
    return [p for p in source if p is not None]


def _labelled_amounts(partition: Partition) -> Iterable[tuple[str, Decimal]]:
    """(label, absolute amount) for every row that has both."""
    category_idx = category_column(partition.headers)
    amount_idx = amount_column(partition.headers)
    if category_idx < 0 or amount_idx < 0:
        return

    for row in partition.rows:
        label = Partition.cell(row, category_idx).strip()
        if not label:
            continue
        amount = parse_amount(Partition.cell(row, amount_idx))
        if amount is None:
            continue
        yield label, abs(amount)


def aggregate(
    source: Union[Partition, Iterable[Partition], None],
    classifier: Classifier = matching_buckets,
) -> CategoryTotals:
    """
    Sum amounts per label and per bucket.

    Args:
        source: A partition or any iterable of partitions (e.g. a cache snapshot's values).
        classifier: Maps a label to every bucket it belongs to. A row
                    contributes its amount to each of them.

    Returns:
        CategoryTotals for all given rows.
    """
    by_label: dict[str, Decimal] = defaultdict(Decimal)
    by_bucket: dict[Bucket, Decimal] = defaultdict(Decimal)

    for partition in _as_partitions(source):
        for label, amount in _labelled_amounts(partition):
            by_label[label] += amount
            for bucket in classifier(label):
                by_bucket[bucket] += amount

    return CategoryTotals(
        by_label=dict(by_label),
        **{field: by_bucket[bucket] for bucket, field in _BUCKET_FIELDS.items()},
    )


def pacing_status(usage_percent: int, ideal_percent: int) -> PacingStatus:
    if usage_percent >= 100:
        return PacingStatus.OVER_BUDGET
    if usage_percent >= ideal_percent:
        return PacingStatus.AHEAD_OF_PACE
    return PacingStatus.ON_TRACK


def summarize(
    totals: CategoryTotals,
    total_budget: Union[Decimal, int, float],
    cycle: Optional[BudgetCycle] = None,
    fixed_budget: Optional[Union[Decimal, int, float]] = None,
) -> BudgetSummary:
    """
    Derive the budget summary figures.

    Args:
        totals: Category totals for the period being judged.
        total_budget: Living-expense budget for the period.
        cycle: Budget cycle supplying remaining days and the ideal line.
               Defaults to the cycle for the current month.
        fixed_budget: Planned fixed expenses, if the sheet records them.
    """
    cycle = cycle or compute_cycle(None)
    budget = Decimal(str(total_budget))
    living = totals.living_expense

    remaining_budget = budget - living
    daily_budget = math.floor(remaining_budget / cycle.remaining_days)
    usage_percent = percent(living, budget)

    variance = None
    if fixed_budget is not None:
        variance = totals.fixed_expense - Decimal(str(fixed_budget))

    return BudgetSummary(
        total_budget=budget,
        living_expense=living,
        remaining_budget=remaining_budget,
        daily_budget=daily_budget,
        usage_percent=usage_percent,
        ideal_percent=cycle.ideal_percent,
        remaining_days=cycle.remaining_days,
        actual_remaining=totals.actual_remaining,
        status=pacing_status(usage_percent, cycle.ideal_percent),
        fixed_expense_variance=variance,
    )


def living_expense_breakdown(totals: CategoryTotals) -> list[tuple[str, Decimal]]:
    """Per-label living-expense totals, largest first."""
    entries = [
        (label, amount)
        for label, amount in totals.by_label.items()
        if Bucket.LIVING_EXPENSE in matching_buckets(label)
    ]
    return sorted(entries, key=lambda item: item[1], reverse=True)


def bucket_rows(
    source: Union[Partition, Iterable[Partition], None],
    bucket: Bucket,
    classifier: Classifier = matching_buckets,
) -> list[tuple[str, ...]]:
    """Rows whose category label belongs to the bucket, for drill-down views."""
    rows = []
    for partition in _as_partitions(source):
        category_idx = category_column(partition.headers)
        if category_idx < 0:
            continue
        for row in partition.rows:
            label = Partition.cell(row, category_idx).strip()
            if label and bucket in classifier(label):
                rows.append(row)
    return rows


def partitions_in_year(partitions: Iterable[Partition], year: int) -> list[Partition]:
    """Partitions whose title names the given year."""
    selected = []
    for partition in _as_partitions(partitions):
        parsed = parse_partition_label(partition.title)
        if parsed and parsed[0] == year:
            selected.append(partition)
    return selected


def yearly_bucket_total(
    partitions: Iterable[Partition],
    year: int,
    bucket: Bucket = Bucket.TRAVEL_EXPENSE,
) -> Decimal:
    """Total of one bucket over every partition of a year (e.g. annual travel spend)."""
    return aggregate(partitions_in_year(partitions, year)).bucket_total(bucket)
