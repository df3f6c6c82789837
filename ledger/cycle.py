"""
Budget Cycle Calculator

The household budgets from payday to payday: the cycle for "2024년 3월"
runs from 2024-02-25 through 2024-03-24. The cycle tells the summary how
far through the period we are, which becomes the "ideal" usage line that
actual spending is compared against.

Elapsed and remaining days are always computed against today's date,
even when the selected month is in the past or future. The result then
reads as "if this were the current cycle" and is clamped to the window.
"""

from datetime import date, datetime
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from ledger.models.ledger import BudgetCycle
from ledger.parsing import parse_partition_label, percent


CYCLE_START_DAY = 25
CYCLE_END_DAY = 24


def cycle_window(year: int, month: int) -> tuple[date, date]:
    """(start, end) of the cycle that ends in the given month."""
    end = date(year, month, CYCLE_END_DAY)
    start = (date(year, month, 1) - relativedelta(months=1)).replace(day=CYCLE_START_DAY)
    return start, end


def compute_cycle(
    selected_label: Optional[str],
    now: Optional[Union[date, datetime]] = None,
) -> BudgetCycle:
    """
    Compute the budget cycle for a selected partition label.

    Args:
        selected_label: Partition title such as "2024년 3월". If missing or
                        unparseable, the cycle ending in now's month is used.
        now: Reference moment; defaults to today.

    Returns:
        The cycle window with progress metrics.
    """
    if now is None:
        today = date.today()
    elif isinstance(now, datetime):
        today = now.date()
    else:
        today = now

    target = parse_partition_label(selected_label) or (today.year, today.month)
    start, end = cycle_window(*target)

    total_days = (end - start).days + 1
    elapsed_days = max(0, min((today - start).days, total_days))
    remaining_days = max(1, total_days - elapsed_days + 1)

    return BudgetCycle(
        start=start,
        end=end,
        total_days=total_days,
        elapsed_days=elapsed_days,
        remaining_days=remaining_days,
        ideal_percent=percent(elapsed_days, total_days),
    )
