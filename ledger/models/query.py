"""
Query Models

A QuerySpec is everything the ledger table lets the user change:
search text, per-column filters, a date range, the sort, and how many
rows are revealed. Specs are immutable; every user action produces a
new spec and the engine is simply re-run.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledger.config import get_settings


def _default_page_size() -> int:
    return get_settings().query.page_size


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortKey(BaseModel):
    """Explicit sort on one column."""
    model_config = ConfigDict(frozen=True)

    column: int = Field(..., ge=0, description="Column index")
    direction: SortDirection = SortDirection.DESC


class DateRange(BaseModel):
    """Inclusive date range; either end may be open."""
    model_config = ConfigDict(frozen=True)

    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        if self.start and self.end and self.end < self.start:
            raise ValueError("Date range end cannot be before start")
        return self

    @property
    def is_active(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, value: date) -> bool:
        if self.start and value < self.start:
            return False
        if self.end and value > self.end:
            return False
        return True


class QuerySpec(BaseModel):
    """
    Search, filter, sort and pagination state for one table view.

    Changing what is matched (search text, filters, date range) resets
    the visible count to a single page; load_more() reveals another page.
    """
    model_config = ConfigDict(frozen=True)

    search: str = ""
    column_filters: dict[int, frozenset[str]] = Field(default_factory=dict)
    date_range: DateRange = Field(default_factory=DateRange)
    sort: Optional[SortKey] = None
    page_size: int = Field(default_factory=_default_page_size, ge=1)
    visible_count: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def default_visible_count(cls, data):
        """A fresh spec reveals exactly one page."""
        if isinstance(data, dict) and data.get("visible_count") is None:
            data = dict(data)
            data["visible_count"] = data.get("page_size") or _default_page_size()
        return data

    def _first_page(self, **changes) -> "QuerySpec":
        return self.model_copy(update={**changes, "visible_count": self.page_size})

    def with_search(self, text: str) -> "QuerySpec":
        return self._first_page(search=text)

    def with_filter(self, column: int, values) -> "QuerySpec":
        filters = dict(self.column_filters)
        values = frozenset(values)
        if values:
            filters[column] = values
        else:
            filters.pop(column, None)
        return self._first_page(column_filters=filters)

    def with_date_range(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> "QuerySpec":
        return self._first_page(date_range=DateRange(start=start, end=end))

    def toggle_sort(self, column: int) -> "QuerySpec":
        """Cycle a column's sort: descending, then ascending, then off."""
        if self.sort is None or self.sort.column != column:
            sort = SortKey(column=column, direction=SortDirection.DESC)
        elif self.sort.direction == SortDirection.DESC:
            sort = SortKey(column=column, direction=SortDirection.ASC)
        else:
            sort = None
        return self.model_copy(update={"sort": sort})

    def load_more(self) -> "QuerySpec":
        return self.model_copy(
            update={"visible_count": self.visible_count + self.page_size}
        )


class QueryResult(BaseModel):
    """A filtered, sorted, paginated view of one partition."""
    model_config = ConfigDict(frozen=True)

    headers: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = ()
    total_matched: int = 0
    visible_count: int = 0

    @property
    def has_more(self) -> bool:
        return self.visible_count < self.total_matched


class FilterOption(BaseModel):
    """A filterable column and the distinct values offered for it."""
    model_config = ConfigDict(frozen=True)

    column: int
    header: str
    values: tuple[str, ...] = ()


class FlowTotals(BaseModel):
    """Income and expense sums over a set of rows."""
    model_config = ConfigDict(frozen=True)

    income: Decimal = Decimal(0)
    expense: Decimal = Decimal(0)
