"""
Main Orchestrator for Household Ledger

Ties the synchronizer to the two read-side engines and defines what a
screen needs on each render:
1. Budget overview (cycle -> totals -> summary) for the selected month
2. Ledger table (query spec -> paginated view) for one partition or all

DESIGN DECISION: The orchestrator never mutates cached data. Each call
takes a fresh snapshot from the synchronizer and hands it to pure
engines, so a refresh completing mid-render cannot tear a view.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from ledger.aggregation import (
    aggregate,
    bucket_rows,
    living_expense_breakdown,
    partitions_in_year,
    summarize,
    yearly_bucket_total,
)
from ledger.config import get_settings
from ledger.cycle import compute_cycle
from ledger.logs import configure_logging, get_logger
from ledger.models.ledger import (
    Bucket,
    BudgetCycle,
    BudgetSummary,
    CategoryTotals,
    Partition,
)
from ledger.models.query import QueryResult, QuerySpec
from ledger.parsing import parse_partition_label
from ledger.queries import QueryEngine, combine_partitions
from ledger.services.storage import GoogleSheetsTabularSource, TabularSourceInterface
from ledger.sync import PartitionSynchronizer


logger = get_logger(__name__)


class BudgetOverview(BaseModel):
    """Everything the budget summary panel shows for one month."""
    model_config = ConfigDict(frozen=True)

    partition_title: Optional[str]
    cycle: BudgetCycle
    totals: CategoryTotals
    summary: BudgetSummary
    living_breakdown: tuple[tuple[str, Decimal], ...] = ()
    yearly_travel: Decimal = Decimal(0)


class BudgetFlow:
    """
    Builds the budget overview from the synchronizer's current snapshot.

    Period figures (usage, daily allowance) use the selected partition
    only; the yearly travel figure spans every cached partition of the
    selected year.
    """

    def __init__(self, synchronizer: PartitionSynchronizer):
        self._sync = synchronizer

    def overview(self, now: Optional[Union[date, datetime]] = None) -> BudgetOverview:
        title = self._sync.selection
        snapshot = self._sync.snapshot()
        partition = snapshot.get(title) if title else None

        cycle = compute_cycle(title, now)
        totals = aggregate(partition)
        summary = summarize(
            totals,
            self._sync.total_budget,
            cycle,
            fixed_budget=self._sync.fixed_budget,
        )

        parsed = parse_partition_label(title)
        yearly_travel = (
            yearly_bucket_total(snapshot.values(), parsed[0], Bucket.TRAVEL_EXPENSE)
            if parsed
            else totals.travel_expense
        )

        return BudgetOverview(
            partition_title=title,
            cycle=cycle,
            totals=totals,
            summary=summary,
            living_breakdown=tuple(living_expense_breakdown(totals)),
            yearly_travel=yearly_travel,
        )

    def overall_totals(self) -> CategoryTotals:
        """Category totals across every cached partition."""
        return aggregate(self._sync.snapshot().values())

    def bucket_details(self, bucket: Bucket) -> Optional[Partition]:
        """
        Drill-down rows for one bucket of the selected month.

        Travel is shown for the whole year, like its total.
        """
        title = self._sync.selection
        snapshot = self._sync.snapshot()
        partition = snapshot.get(title) if title else None
        if partition is None:
            return None

        parsed = parse_partition_label(title)
        if bucket == Bucket.TRAVEL_EXPENSE and parsed:
            source = partitions_in_year(snapshot.values(), parsed[0]) or [partition]
        else:
            source = [partition]

        return Partition(
            title=f"{title} {bucket.value}",
            headers=source[0].headers,
            rows=bucket_rows(source, bucket),
        )


class TableFlow:
    """Runs the ledger table query for the selected month or all months."""

    def __init__(self, synchronizer: PartitionSynchronizer, engine: Optional[QueryEngine] = None):
        self._sync = synchronizer
        self._engine = engine or QueryEngine()

    @property
    def engine(self) -> QueryEngine:
        return self._engine

    def selected(self, spec: QuerySpec) -> QueryResult:
        return self._engine.query(self._sync.current_partition, spec)

    def all_months(self, spec: QuerySpec) -> QueryResult:
        """Search across every cached partition (newest month first)."""
        snapshot = self._sync.snapshot()
        ordered = [snapshot[ref.title] for ref in self._sync.partitions if ref.title in snapshot]
        return self._engine.query(combine_partitions(ordered), spec)


def create_app_components(
    source: Optional[TabularSourceInterface] = None,
) -> dict:
    """
    Create all application components.

    Returns a dict with synchronizer, budget_flow and table_flow.
    """
    settings = get_settings()
    configure_logging()

    source = source or GoogleSheetsTabularSource()
    synchronizer = PartitionSynchronizer(
        source,
        sheets_settings=settings.google_sheets,
        request_delay=settings.sync.request_delay_seconds,
    )
    logger.info(
        "components_created",
        environment=settings.app.app_environment,
        source=type(source).__name__,
    )

    return {
        "synchronizer": synchronizer,
        "budget_flow": BudgetFlow(synchronizer),
        "table_flow": TableFlow(synchronizer),
    }
