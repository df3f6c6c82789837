"""
Column Role Detection

The ledger sheets have no fixed schema: headers are typed by hand and
vary between months ("날짜" vs "일자", "금액" vs "가격"). A column's role is
inferred from its header text with ordered keyword rules; the first rule
that matches wins.
"""

from typing import Optional, Sequence

from ledger.models.ledger import ColumnRole


# Ordered: a header like "메모 내용" is a memo, not a summary
_ROLE_KEYWORDS: tuple[tuple[ColumnRole, tuple[str, ...]], ...] = (
    (ColumnRole.DATE, ("날짜", "일자", "date")),
    (ColumnRole.ELEMENT, ("요소",)),
    (ColumnRole.CATEGORY, ("지출분류", "분류")),
    (ColumnRole.MEMO, ("메모",)),
    (ColumnRole.SUMMARY, ("요약", "내용")),
    (ColumnRole.AMOUNT, ("금액", "가격", "원", "money", "amount")),
)

# Headers that only count as amounts when they are exactly this word
_EXACT_AMOUNT_HEADERS = frozenset({"수입", "지출"})

SORTABLE_ROLES = frozenset({ColumnRole.DATE, ColumnRole.AMOUNT})
FILTERABLE_ROLES = frozenset({
    ColumnRole.DATE,
    ColumnRole.ELEMENT,
    ColumnRole.CATEGORY,
    ColumnRole.MEMO,
})


def column_role(header: Optional[str]) -> ColumnRole:
    """Infer a column's role from its header text."""
    lower = (header or "").strip().lower()
    if not lower:
        return ColumnRole.NONE

    for role, keywords in _ROLE_KEYWORDS:
        if role == ColumnRole.AMOUNT and lower in _EXACT_AMOUNT_HEADERS:
            return role
        if any(keyword in lower for keyword in keywords):
            return role

    return ColumnRole.NONE


def is_placeholder_header(header: Optional[str]) -> bool:
    """Blank headers and auto-generated ones ("Column 7") carry no meaning."""
    text = (header or "").strip()
    return not text or text.lower().startswith("column")


def find_column(headers: Sequence[str], role: ColumnRole) -> int:
    """Index of the first column with the given role, or -1."""
    for index, header in enumerate(headers):
        if column_role(header) == role:
            return index
    return -1


def category_column(headers: Sequence[str]) -> int:
    """Index of the category ("분류") column, or -1."""
    for index, header in enumerate(headers):
        if header and "분류" in header:
            return index
    return -1


def amount_column(headers: Sequence[str]) -> int:
    """
    Index of the amount column used for totals, or -1.

    Prefers a header containing "금액"/"amount"; otherwise falls back to the
    last header that is neither blank nor a placeholder.
    """
    for index, header in enumerate(headers):
        lower = (header or "").lower()
        if "금액" in lower or "amount" in lower:
            return index

    for index in range(len(headers) - 1, -1, -1):
        if not is_placeholder_header(headers[index]):
            return index

    return -1


def is_sortable(header: Optional[str]) -> bool:
    return column_role(header) in SORTABLE_ROLES


def is_filterable(header: Optional[str]) -> bool:
    if is_placeholder_header(header):
        return False
    return column_role(header) in FILTERABLE_ROLES
