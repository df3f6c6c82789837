"""
Cell Parsing and Formatting

Ledger cells are free-form text typed by a person into a spreadsheet:
"12,000", "-5,000원", "3/1", "2024. 3. 10", "N/A". Everything here
returns None for text it cannot read rather than raising, because partial
malformation is normal and the engines simply skip such cells.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from dateutil import parser as date_parser


Number = Union[int, float, Decimal]

_NON_NUMERIC = re.compile(r"[^\d.,-]")
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")

_MONTH_DAY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})$")
_MONTH_DAY_DASH = re.compile(r"^(\d{1,2})-(\d{1,2})$")
_DOTTED_DATE = re.compile(r"^(\d{4})\.\s*(\d{1,2})\.\s*(\d{1,2})\.?$")

_PARTITION_LABEL = re.compile(r"(\d{4})년\s*(\d{1,2})월")
_PARTITION_TITLE = re.compile(r"^\s*(\d{4})년\s*(\d{1,2})월\s*$")


# =============================================================================
# AMOUNTS
# =============================================================================

def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse an amount cell.

    Everything but digits, '.', ',' and '-' is stripped, thousands
    separators are dropped, and the leading number is read.

    Returns:
        The signed amount, or None for blank/unreadable cells.
    """
    if value is None:
        return None
    text = str(value)
    if not text.strip() or text.strip() == "-":
        return None

    cleaned = _NON_NUMERIC.sub("", text).replace(",", "")
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def format_amount(amount: Number) -> str:
    """Format with thousands separators: 1234567 -> '1,234,567'."""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"{int(value):,}"
    return f"{value.normalize():,f}"


def to_manwon(amount: Number) -> int:
    """Convert won to 만원 (units of 10,000), rounded half up."""
    return int(
        (Decimal(str(amount)) / Decimal(10000)).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
    )


def percent(part: Number, whole: Number) -> int:
    """round(100 * part / whole) with half-up rounding; 0 when whole is 0."""
    whole = Decimal(str(whole))
    if whole == 0:
        return 0
    ratio = Decimal(100) * Decimal(str(part)) / whole
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# =============================================================================
# DATES
# =============================================================================

def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Optional[str], reference_year: Optional[int] = None) -> Optional[date]:
    """
    Parse a date cell.

    Accepted forms, in order:
    - "M/D" and "M-D" (year taken from reference_year, default this year)
    - "YYYY. M. D" (the form new entries are written in)
    - anything python-dateutil can read

    Returns:
        The calendar date, or None if the cell is not a date.
    """
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None

    year = reference_year or date.today().year

    for pattern in (_MONTH_DAY_SLASH, _MONTH_DAY_DASH):
        match = pattern.match(text)
        if match:
            return _safe_date(year, int(match.group(1)), int(match.group(2)))

    match = _DOTTED_DATE.match(text)
    if match:
        return _safe_date(*(int(g) for g in match.groups()))

    # dateutil reads bare words like "a" as AM/PM markers
    if not any(ch.isdigit() for ch in text):
        return None

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError):
        return None


def qualify_short_date(value: Optional[str], year: int) -> Optional[str]:
    """
    Rewrite a yearless "M/D" or "M-D" cell as "YYYY. M. D".

    Any other cell, including an impossible month/day, is returned as is.
    """
    if not value:
        return value
    text = str(value).strip()
    for pattern in (_MONTH_DAY_SLASH, _MONTH_DAY_DASH):
        match = pattern.match(text)
        if match:
            parsed = _safe_date(year, int(match.group(1)), int(match.group(2)))
            if parsed is None:
                return value
            return f"{parsed.year}. {parsed.month}. {parsed.day}"
    return value


# =============================================================================
# PARTITION LABELS
# =============================================================================

def parse_partition_label(label: Optional[str]) -> Optional[tuple[int, int]]:
    """
    Extract (year, month) from a label such as "2024년 3월".

    The label may contain other text; the first "<year>년 <month>월"
    occurrence wins.
    """
    if not label:
        return None
    match = _PARTITION_LABEL.search(label)
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return year, month


def is_monthly_title(title: str) -> bool:
    """True if a worksheet title names a monthly partition."""
    match = _PARTITION_TITLE.match(title or "")
    return bool(match) and 1 <= int(match.group(2)) <= 12
