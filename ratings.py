"""
Rating aggregation shared by the admin, store-owner and normal-user views.

The average is the arithmetic mean of the stored values rounded half-up to two
decimals. With no ratings the average is None ("no ratings"); when the caller
has not rated the store their value is None ("not rated").
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class RatingSummary:
    count: int
    total: int
    average: Optional[float]
    caller_value: Optional[int] = None


def average(total: int, count: int) -> Optional[float]:
    if count == 0:
        return None
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def aggregate_ratings(ratings: Iterable[Mapping[str, Any]], caller_id: Optional[str] = None) -> RatingSummary:
    """Summarise one store's ratings, each a mapping with user_id and value."""
    count = 0
    total = 0
    caller_value = None
    for r in ratings:
        count += 1
        total += r["value"]
        if caller_id is not None and r["user_id"] == caller_id:
            caller_value = r["value"]
    return RatingSummary(count=count, total=total, average=average(total, count), caller_value=caller_value)


def group_by_store(ratings: Iterable[Mapping[str, Any]]) -> Dict[str, List[Mapping[str, Any]]]:
    grouped: Dict[str, List[Mapping[str, Any]]] = defaultdict(list)
    for r in ratings:
        grouped[r["store_id"]].append(r)
    return grouped
