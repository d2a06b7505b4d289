"""
Date Range Resolver
Turns a queried date and scope into inclusive bounds and a bucket granularity
"""

import calendar
from datetime import date
from typing import Any

from .models import DateRange, Granularity, Scope


def days_in_month(day: date) -> int:
    """Number of days in the month containing ``day``"""
    return calendar.monthrange(day.year, day.month)[1]


def is_same_period(first: date, second: date, scope: Scope) -> bool:
    """True when both dates fall in the same calendar month (or year)"""
    if scope is Scope.YEAR:
        return first.year == second.year
    return (first.year, first.month) == (second.year, second.month)


def resolve_date_range(queried_date: date, scope: Any, now: date) -> DateRange:
    """
    Resolve the reporting period for a query

    Args:
        queried_date: Any date inside the requested month or year
        scope: ``month`` or ``year`` (string or Scope)
        now: The caller's notion of today; decides whether the period is in progress

    Returns:
        DateRange with inclusive bounds, granularity and current-period flag
    """
    scope = Scope.parse(scope)

    if scope is Scope.YEAR:
        lower = date(queried_date.year, 1, 1)
        upper = date(queried_date.year, 12, 31)
        granularity = Granularity.MONTH
    else:
        lower = queried_date.replace(day=1)
        upper = queried_date.replace(day=days_in_month(queried_date))
        granularity = Granularity.DAY

    return DateRange(
        scope=scope,
        queried_date=queried_date,
        now=now,
        lower_bound=lower,
        upper_bound=upper,
        granularity=granularity,
        is_current_period=is_same_period(queried_date, now, scope),
    )
