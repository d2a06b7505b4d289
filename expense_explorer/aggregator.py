"""
Category Aggregator
Groups spending by category and subcategory and computes each group's share
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
    ZERO,
    CategoryAggregate,
    DateRange,
    ExpenseRecord,
    Filter,
    Granularity,
    RawAggregateBundle,
    RawBucket,
    RawTimeBucket,
)

HUNDRED = Decimal("100")

ORDERINGS = ("total_desc", "total_asc", "name")


class CategoryAggregator:
    """Builds category breakdowns from pre-aggregated buckets"""

    def __init__(self, order: str = "total_desc"):
        """
        Initialize aggregator

        Args:
            order: ``total_desc`` (default), ``total_asc`` or ``name``; ties on
                total are always broken by name ascending
        """
        if order not in ORDERINGS:
            raise ValueError(f"Unknown category ordering {order!r}; expected one of {ORDERINGS}")
        self.order = order

    def aggregate(self, buckets: Iterable[RawBucket]) -> Tuple[CategoryAggregate, ...]:
        """
        Merge buckets by key and compute percentages

        Args:
            buckets: Raw ``{key, count, total}`` buckets; repeated keys are summed

        Returns:
            Ordered CategoryAggregate tuple
        """
        totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        counts: Dict[str, int] = defaultdict(int)
        for bucket in buckets:
            totals[bucket.key] += bucket.total
            counts[bucket.key] += bucket.count

        grand_total = sum(totals.values(), ZERO)

        aggregates = [
            CategoryAggregate(
                name=name,
                total=total,
                count=counts[name],
                percent=(HUNDRED * total / grand_total) if grand_total else ZERO,
            )
            for name, total in totals.items()
        ]
        return tuple(self._sort(aggregates))

    def _sort(self, aggregates: List[CategoryAggregate]) -> List[CategoryAggregate]:
        if self.order == "name":
            return sorted(aggregates, key=lambda item: item.name)
        # Sort by name first so the stable total sort keeps names ascending on ties
        by_name = sorted(aggregates, key=lambda item: item.name)
        return sorted(by_name, key=lambda item: item.total, reverse=self.order == "total_desc")


def group_records(records: Iterable[ExpenseRecord], field: str) -> Tuple[RawBucket, ...]:
    """Sum and count records per value of ``field``"""
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[str, int] = defaultdict(int)
    for record in records:
        key = getattr(record, field)
        totals[key] += record.amount
        counts[key] += 1
    return tuple(RawBucket(key=key, count=counts[key], total=totals[key]) for key in totals)


def bucket_by_time(records: Iterable[ExpenseRecord], granularity: Granularity) -> Tuple[RawTimeBucket, ...]:
    """Sum and count records per day, or per month labelled by its first day"""
    totals: Dict = defaultdict(lambda: ZERO)
    counts: Dict = defaultdict(int)
    for record in records:
        label = record.date if granularity is Granularity.DAY else record.date.replace(day=1)
        totals[label] += record.amount
        counts[label] += 1
    return tuple(
        RawTimeBucket(key=label, count=counts[label], total=totals[label])
        for label in sorted(totals)
    )


def aggregate_records(
    records: Iterable[ExpenseRecord],
    period: DateRange,
    expense_filter: Optional[Filter] = None,
) -> RawAggregateBundle:
    """
    Build the bundle a search backend would return for plain records

    Args:
        records: Candidate records, in any order
        period: Period to clip and bucket by; a DateRange or a SearchRequest
        expense_filter: Optional filter narrowing the records

    Returns:
        RawAggregateBundle with records sorted by date ascending
    """
    matching = [
        record for record in records
        if period.contains(record.date)
        and (expense_filter is None or expense_filter.matches(record))
    ]
    matching.sort(key=lambda record: record.date)

    return RawAggregateBundle(
        records=tuple(matching),
        categories=group_records(matching, "category"),
        subcategories=group_records(matching, "subcategory"),
        time_units=bucket_by_time(matching, period.granularity),
    )
