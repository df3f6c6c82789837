"""
Category Classifier

Folds free-text category labels ("생활비 지출", "고정 지출", "여행") into the
fixed Bucket taxonomy by substring matching.

DESIGN DECISION: Each bucket is an independent predicate, not a branch of
a single switch. A label such as "기타 여행 지출" satisfies both the travel
and the other-expense predicates and is counted in both totals. This
mirrors how the household actually labels rows; inventing exclusivity
rules would silently move money between buckets.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from ledger.models.ledger import Bucket


@dataclass(frozen=True)
class BucketRule:
    bucket: Bucket
    matches: Callable[[str], bool]


def _all_of(*words: str) -> Callable[[str], bool]:
    return lambda label: all(word in label for word in words)


def _any_of(*words: str) -> Callable[[str], bool]:
    return lambda label: any(word in label for word in words)


BUCKET_RULES: tuple[BucketRule, ...] = (
    BucketRule(Bucket.LIVING_EXPENSE, _all_of("생활비", "지출")),
    BucketRule(Bucket.FIXED_EXPENSE, _all_of("고정", "지출")),
    BucketRule(Bucket.TRAVEL_EXPENSE, _any_of("여행")),
    BucketRule(Bucket.INCOME, _any_of("수입")),
    BucketRule(Bucket.SAVINGS, _any_of("저금", "저축")),
    BucketRule(Bucket.PAYMENT, _any_of("대금")),
    BucketRule(Bucket.OTHER_EXPENSE, _all_of("기타", "지출")),
)


def normalize_label(label: Optional[str]) -> str:
    return (label or "").strip().lower()


def matching_buckets(label: Optional[str]) -> tuple[Bucket, ...]:
    """
    Every bucket whose predicate holds for the label, in rule order.

    Blank labels match nothing. A non-blank label matching no rule
    yields (Bucket.UNCATEGORIZED,).
    """
    normalized = normalize_label(label)
    if not normalized:
        return ()
    matched = tuple(rule.bucket for rule in BUCKET_RULES if rule.matches(normalized))
    return matched or (Bucket.UNCATEGORIZED,)


def classify(label: Optional[str]) -> Bucket:
    """Primary bucket for a label: the first matching rule, else UNCATEGORIZED."""
    matched = matching_buckets(label)
    return matched[0] if matched else Bucket.UNCATEGORIZED


def is_income_label(label: Optional[str]) -> bool:
    return "수입" in normalize_label(label)


def is_expense_label(label: Optional[str]) -> bool:
    normalized = normalize_label(label)
    return "지출" in normalized or "여행" in normalized
