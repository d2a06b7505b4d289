"""
Canonical Bucket Builder
Enumerates every time unit of a period and fills it from raw time buckets
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from .date_range import days_in_month
from .models import ZERO, DateRange, RawTimeBucket, Scope, TimeUnitAggregate

logger = logging.getLogger("expense_explorer.buckets")


def canonical_keys(date_range: DateRange) -> List[int]:
    """
    Full ordered key set of the period

    Month scope yields day-of-month keys ``1..days_in_month``; year scope
    yields month-of-year keys ``1..12``.
    """
    if date_range.scope is Scope.YEAR:
        return list(range(1, 13))
    return list(range(1, days_in_month(date_range.queried_date) + 1))


def unit_key(date_range: DateRange, label) -> int:
    """Normalise a bucket's date label into the period's key space"""
    if date_range.scope is Scope.YEAR:
        return label.month
    return label.day


def fill_buckets(
    date_range: DateRange, time_buckets: Iterable[RawTimeBucket]
) -> Tuple[TimeUnitAggregate, ...]:
    """
    Build the zero-filled canonical series for a period

    Args:
        date_range: Resolved period
        time_buckets: Raw per-unit buckets from the backend, possibly sparse

    Returns:
        One TimeUnitAggregate per canonical key, in ascending key order
    """
    keys = canonical_keys(date_range)
    valid = set(keys)

    totals: Dict[int, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[int, int] = defaultdict(int)

    for bucket in time_buckets:
        if not date_range.contains(bucket.key):
            logger.debug("Ignoring time bucket %s outside %s..%s",
                         bucket.key, date_range.lower_bound, date_range.upper_bound)
            continue
        key = unit_key(date_range, bucket.key)
        if key not in valid:
            logger.debug("Ignoring time bucket %s with no canonical key", bucket.key)
            continue
        totals[key] += bucket.total
        counts[key] += bucket.count

    return tuple(
        TimeUnitAggregate(period_key=key, total=totals.get(key, ZERO), count=counts.get(key, 0))
        for key in keys
    )
