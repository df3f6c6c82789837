"""
Tabular Query Engine

Produces the browsable view of one partition: sorted, searched, filtered
and sliced to the number of rows currently revealed.

DESIGN DECISION: Query execution is a PURE function of (partition, spec).
The table re-runs it on every spec change instead of patching a previous
result, so the same spec over the same partition always yields the same
view, no matter what came before.

Pipeline (fixed order):
1. sort          - default: newest date first
2. search        - case-insensitive substring over every cell
3. date range    - inclusive, on the date column
4. column filter - cell value must be in the selected set
5. page slice    - first visible_count rows
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ledger.classifier import is_expense_label, is_income_label
from ledger.columns import (
    amount_column,
    category_column,
    column_role,
    find_column,
    is_filterable,
)
from ledger.models.ledger import ColumnRole, Partition
from ledger.models.query import (
    DateRange,
    FilterOption,
    FlowTotals,
    QueryResult,
    QuerySpec,
    SortDirection,
    SortKey,
)
from ledger.parsing import (
    parse_amount,
    parse_date,
    parse_partition_label,
    qualify_short_date,
)


Row = tuple[str, ...]

COMBINED_TITLE = "전체 데이터"


class QueryEngine:
    """
    Runs query specs against partitions.

    Short dates such as "3/1" carry no year; they are read in the
    partition's own year (from its title) unless reference_year is given.
    """

    def __init__(self, reference_year: Optional[int] = None):
        self._reference_year = reference_year

    def query(self, partition: Optional[Partition], spec: QuerySpec) -> QueryResult:
        """
        Execute a query spec over one partition.

        A missing partition is an empty view, not an error.
        """
        if partition is None:
            return QueryResult(visible_count=spec.visible_count)

        year = self._year_for(partition)
        rows = self._sort(partition, spec.sort, year)
        rows = self._search(rows, spec.search)
        rows = self._within_dates(rows, partition.headers, spec.date_range, year)
        rows = self._filter_columns(rows, spec.column_filters)

        return QueryResult(
            headers=partition.headers,
            rows=tuple(rows[:spec.visible_count]),
            total_matched=len(rows),
            visible_count=spec.visible_count,
        )

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _year_for(self, partition: Partition) -> int:
        if self._reference_year:
            return self._reference_year
        parsed = parse_partition_label(partition.title)
        return parsed[0] if parsed else date.today().year

    def _sort(
        self,
        partition: Partition,
        sort: Optional[SortKey],
        year: int,
    ) -> list[Row]:
        rows = list(partition.rows)
        headers = partition.headers

        if sort is None:
            date_idx = find_column(headers, ColumnRole.DATE)
            if date_idx < 0:
                return rows
            return _sort_by_date(rows, date_idx, descending=True, year=year)

        descending = sort.direction == SortDirection.DESC
        header = headers[sort.column] if sort.column < len(headers) else ""
        role = column_role(header)

        if role == ColumnRole.DATE:
            return _sort_by_date(rows, sort.column, descending=descending, year=year)

        if role == ColumnRole.AMOUNT:
            def key(row: Row):
                return parse_amount(Partition.cell(row, sort.column)) or Decimal(0)
        else:
            # Precomposed Hangul syllables are encoded in 가나다 order, so
            # code-point order matches Korean collation for Hangul text.
            def key(row: Row):
                return Partition.cell(row, sort.column).casefold()

        return sorted(rows, key=key, reverse=descending)

    def _search(self, rows: list[Row], text: str) -> list[Row]:
        if not text.strip():
            return rows
        needle = text.lower()
        return [
            row for row in rows
            if any(needle in cell.lower() for cell in row)
        ]

    def _within_dates(
        self,
        rows: list[Row],
        headers: Sequence[str],
        date_range: DateRange,
        year: int,
    ) -> list[Row]:
        if not date_range.is_active:
            return rows
        date_idx = find_column(headers, ColumnRole.DATE)
        if date_idx < 0:
            return []

        selected = []
        for row in rows:
            parsed = parse_date(Partition.cell(row, date_idx), year)
            if parsed is not None and date_range.contains(parsed):
                selected.append(row)
        return selected

    def _filter_columns(
        self,
        rows: list[Row],
        column_filters: dict[int, frozenset[str]],
    ) -> list[Row]:
        for column, values in column_filters.items():
            if not values:
                continue
            rows = [row for row in rows if Partition.cell(row, column) in values]
        return rows

    # ------------------------------------------------------------------
    # Companions to the table view
    # ------------------------------------------------------------------

    def filter_options(self, partition: Optional[Partition]) -> list[FilterOption]:
        """Distinct non-blank values for each filterable column."""
        if partition is None:
            return []
        options = []
        for index, header in enumerate(partition.headers):
            if not is_filterable(header):
                continue
            values = {
                Partition.cell(row, index)
                for row in partition.rows
                if Partition.cell(row, index)
            }
            options.append(
                FilterOption(column=index, header=header, values=tuple(sorted(values)))
            )
        return options

    def flow_totals(
        self,
        headers: Sequence[str],
        rows: Iterable[Row],
    ) -> FlowTotals:
        """
        Income and expense sums over rows, judged by their category label.

        Savings and payment rows move money between accounts and count
        as neither.
        """
        amount_idx = amount_column(headers)
        category_idx = category_column(headers)
        if amount_idx < 0 or category_idx < 0:
            return FlowTotals()

        income = Decimal(0)
        expense = Decimal(0)
        for row in rows:
            label = Partition.cell(row, category_idx)
            amount = parse_amount(Partition.cell(row, amount_idx))
            if amount is None or not label:
                continue
            if is_expense_label(label):
                expense += abs(amount)
            elif is_income_label(label):
                income += abs(amount)

        return FlowTotals(income=income, expense=expense)


def _sort_by_date(
    rows: list[Row],
    column: int,
    descending: bool,
    year: int,
) -> list[Row]:
    """Sort by parsed date; unreadable dates go last in either direction."""
    dated = []
    undated = []
    for row in rows:
        parsed = parse_date(Partition.cell(row, column), year)
        if parsed is None:
            undated.append(row)
        else:
            dated.append((parsed, row))

    dated.sort(key=lambda item: item[0], reverse=descending)
    return [row for _, row in dated] + undated


def _year_qualified_rows(partition: Partition) -> Sequence[Row]:
    parsed = parse_partition_label(partition.title)
    date_idx = find_column(partition.headers, ColumnRole.DATE)
    if not parsed or date_idx < 0:
        return partition.rows

    year = parsed[0]
    qualified = []
    for row in partition.rows:
        if date_idx < len(row):
            cell = qualify_short_date(row[date_idx], year)
            if cell != row[date_idx]:
                row = row[:date_idx] + (cell,) + row[date_idx + 1:]
        qualified.append(row)
    return qualified


def combine_partitions(
    partitions: Iterable[Partition],
    title: str = COMBINED_TITLE,
) -> Optional[Partition]:
    """
    Merge partitions into one for the all-months search view.

    Uses the first partition's headers; rows are concatenated in order.
    The merged title carries no year, so yearless "M/D" dates are rewritten
    as "YYYY. M. D" in the year of the partition they came from.
    """
    partitions = [p for p in partitions if p is not None]
    if not partitions:
        return None
    rows = [row for partition in partitions for row in _year_qualified_rows(partition)]
    return Partition(title=title, headers=partitions[0].headers, rows=rows)


def value_suggestions(partitions: Iterable[Partition]) -> dict[ColumnRole, list[str]]:
    """
    Distinct element, category and memo values across partitions.

    Feeds autocompletion when a new entry is typed in.
    """
    found: dict[ColumnRole, set[str]] = defaultdict(set)
    wanted = (ColumnRole.ELEMENT, ColumnRole.CATEGORY, ColumnRole.MEMO)

    for partition in partitions:
        if partition is None:
            continue
        columns = {role: find_column(partition.headers, role) for role in wanted}
        for row in partition.rows:
            for role, index in columns.items():
                if index < 0:
                    continue
                value = Partition.cell(row, index).strip()
                if value:
                    found[role].add(value)

    return {role: sorted(found[role]) for role in wanted}
