"""
Summary Orchestrator
Composes date resolution, aggregation, statistics and projection into a Summary
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Iterable, Optional, Union

from .aggregator import CategoryAggregator, aggregate_records
from .buckets import fill_buckets
from .data_sources import DataSource, SearchRequest
from .date_range import resolve_date_range
from .errors import DataSourceUnavailable, SummaryError
from .models import (
    ZERO,
    DateRange,
    ExpenseRecord,
    Filter,
    RawAggregateBundle,
    Scope,
    Summary,
    parse_amount,
)
from .projector import SpendingProjector
from .unit_statistics import UnitStatisticsCalculator

logger = logging.getLogger("expense_explorer.summary")


def _empty_summary(date_range: DateRange, series) -> Summary:
    return Summary(
        scope=date_range.scope,
        lower_bound=date_range.lower_bound,
        upper_bound=date_range.upper_bound,
        is_current_period=date_range.is_current_period,
        total_expenditure=ZERO,
        number_of_expenses=0,
        spending_over_time=series,
    )


def compute_summary(
    raw: Union[RawAggregateBundle, Iterable[ExpenseRecord], None],
    scope: Any,
    queried_date: date,
    *,
    now: date,
    expense_filter: Optional[Filter] = None,
    budget: Any = None,
    order: str = "total_desc",
) -> Summary:
    """
    Compute the spending summary for one period

    Args:
        raw: Validated search result, or plain records to aggregate in-process
        scope: ``month`` or ``year``
        queried_date: Any date inside the requested period
        now: Today, as seen by the caller
        expense_filter: Applied to plain records; a bundle is expected to be
            filtered already by its data source
        budget: Optional target budget for the whole period
        order: Category ordering, see CategoryAggregator

    Returns:
        Summary

    Raises:
        InvalidScope: Scope is not month or year
        DataSourceUnavailable: No aggregation data was supplied
    """
    scope = Scope.parse(scope)
    aggregator = CategoryAggregator(order)
    if raw is None:
        raise DataSourceUnavailable("No aggregation data supplied; cannot compute breakdowns")

    date_range = resolve_date_range(queried_date, scope, now)

    if isinstance(raw, RawAggregateBundle):
        bundle = raw
        if expense_filter is not None:
            logger.debug("Filter %s assumed applied by the data source", expense_filter)
    else:
        bundle = aggregate_records(raw, date_range, expense_filter)

    if bundle.is_truncated:
        logger.warning("Data source returned %d of %d expenses; totals use the aggregation buckets",
                       len(bundle.records), bundle.expense_count)

    series = fill_buckets(date_range, bundle.time_units)

    if bundle.expense_count == 0:
        logger.info("No expenses for %s %s..%s", scope.value,
                    date_range.lower_bound, date_range.upper_bound)
        return _empty_summary(date_range, series)

    total = bundle.total_expenditure
    spending_by_category = aggregator.aggregate(bundle.categories)
    spending_by_subcategory = aggregator.aggregate(bundle.subcategories)

    projector = SpendingProjector()
    elapsed_through = projector.current_unit(date_range) if date_range.is_current_period else None
    stats = UnitStatisticsCalculator().calculate(
        series,
        total,
        projector.elapsed_units(date_range),
        elapsed_through=elapsed_through,
    )

    projection = projector.project(
        date_range,
        series,
        stats.mean,
        total,
        budget=None if budget is None else parse_amount(budget),
    )

    logger.info(
        "Computed %s summary for %s..%s: %d expenses, total %s, current=%s",
        scope.value, date_range.lower_bound, date_range.upper_bound,
        bundle.expense_count, total, date_range.is_current_period,
    )

    return Summary(
        scope=scope,
        lower_bound=date_range.lower_bound,
        upper_bound=date_range.upper_bound,
        is_current_period=date_range.is_current_period,
        total_expenditure=total,
        number_of_expenses=bundle.expense_count,
        expenses=bundle.records,
        spending_by_category=spending_by_category,
        spending_by_subcategory=spending_by_subcategory,
        spending_over_time=series,
        average_per_unit=stats.mean,
        median_per_unit=stats.median,
        mode_per_unit=stats.mode,
        projection_for_scope=projection.projection_for_scope,
        projected_spending_over_time=projection.projected_spending_over_time,
        prospective_budget_for_forecast=projection.prospective_budget_for_forecast,
    )


class SummaryService:
    """Fetches a period's data from an injected data source and summarises it"""

    def __init__(self,
                 data_source: DataSource,
                 *,
                 order: str = "total_desc",
                 clock: Optional[Callable[[], date]] = None):
        """
        Initialize summary service

        Args:
            data_source: Storage/search backend implementing ``search``
            order: Category ordering passed to the engine
            clock: Source of "now" when the caller does not supply one;
                defaults to the local calendar date
        """
        self.data_source = data_source
        self.order = order
        self.clock = clock

    async def get_summary(self,
                          queried_date: date,
                          scope: Any,
                          *,
                          now: Optional[date] = None,
                          expense_filter: Optional[Filter] = None,
                          budget: Any = None) -> Summary:
        """
        Fetch and summarise one period

        Raises:
            InvalidScope: Before any data is fetched
            DataSourceUnavailable: The data source failed; never replaced by zeros
        """
        scope = Scope.parse(scope)
        if now is None:
            now = self.clock() if self.clock else date.today()

        date_range = resolve_date_range(queried_date, scope, now)
        request = SearchRequest.for_range(date_range, expense_filter)

        try:
            bundle = await self.data_source.search(request)
        except SummaryError:
            raise
        except Exception as exc:
            logger.error("Data source %s failed: %s", type(self.data_source).__name__, exc)
            raise DataSourceUnavailable(f"Data source search failed: {exc}") from exc

        return compute_summary(
            bundle,
            scope,
            queried_date,
            now=now,
            expense_filter=expense_filter,
            budget=budget,
            order=self.order,
        )
