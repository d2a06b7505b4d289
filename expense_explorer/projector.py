"""
Spending Projector Module
Run-rate projection and budget forecast for the period in progress
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from .date_range import days_in_month
from .models import ZERO, DateRange, Scope, TimeUnitAggregate
from .unit_statistics import safe_divide

DAYS_PER_YEAR = Decimal("365")
MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class Projection:
    """Projection outputs; all fields are None outside the current period"""

    projection_for_scope: Optional[Decimal] = None
    projected_spending_over_time: Optional[Tuple[TimeUnitAggregate, ...]] = None
    prospective_budget_for_forecast: Optional[Decimal] = None


class SpendingProjector:
    """Projects period spending from the current run-rate"""

    def total_units(self, date_range: DateRange) -> int:
        """Units in the full period: 12 months, or the days of the queried month"""
        if date_range.scope is Scope.YEAR:
            return MONTHS_PER_YEAR
        return days_in_month(date_range.queried_date)

    def elapsed_units(self, date_range: DateRange) -> Decimal:
        """
        Fractional units that have occurred as of ``now``

        Year scope counts months as ``day_of_year / 365 * 12``; month scope
        counts whole days, today included.

        Args:
            date_range: Resolved period

        Returns:
            Elapsed units for the current period, the full unit count otherwise
        """
        if not date_range.is_current_period:
            return Decimal(self.total_units(date_range))

        now = date_range.now
        if date_range.scope is Scope.YEAR:
            day_of_year = now.timetuple().tm_yday
            return Decimal(day_of_year) / DAYS_PER_YEAR * MONTHS_PER_YEAR
        return Decimal(now.day)

    def current_unit(self, date_range: DateRange) -> int:
        """Key of the unit containing ``now``"""
        if date_range.scope is Scope.YEAR:
            return date_range.now.month
        return date_range.now.day

    def project_scope(self, mean: Optional[Decimal], total_units: int) -> Optional[Decimal]:
        """Linear extrapolation of the run-rate to the full period"""
        if mean is None:
            return None
        return mean * total_units

    def project_series(self,
                       series: Sequence[TimeUnitAggregate],
                       mean: Optional[Decimal],
                       current_unit: int) -> Tuple[TimeUnitAggregate, ...]:
        """
        Actual totals for completed units, a flat run-rate for the rest

        Args:
            series: Zero-filled canonical series
            mean: Average spend per unit
            current_unit: Key of the unit containing ``now``; it and every later
                unit are projected

        Returns:
            Projected series with the same keys as ``series``
        """
        run_rate = mean if mean is not None else ZERO
        return tuple(
            unit if unit.period_key < current_unit
            else TimeUnitAggregate(period_key=unit.period_key, total=run_rate, count=0)
            for unit in series
        )

    def forecast_budget(self,
                        budget: Optional[Decimal],
                        total_expenditure: Decimal,
                        total_units: int,
                        elapsed_units: Decimal) -> Optional[Decimal]:
        """
        Amount that can be spent per remaining unit to land on budget

        Args:
            budget: Target budget for the whole period
            total_expenditure: Spent so far
            total_units: Units in the full period
            elapsed_units: Units already elapsed

        Returns:
            Per-unit allowance, or None without a budget, without spending, or
            when no units remain
        """
        if budget is None or total_expenditure <= 0:
            return None
        remaining_budget = Decimal(budget) - total_expenditure
        remaining_units = Decimal(total_units) - elapsed_units
        return safe_divide(remaining_budget, remaining_units)

    def project(self,
                date_range: DateRange,
                series: Sequence[TimeUnitAggregate],
                mean: Optional[Decimal],
                total_expenditure: Decimal,
                budget: Optional[Decimal] = None) -> Projection:
        """Build all projection outputs for a period"""
        if not date_range.is_current_period:
            return Projection()

        total_units = self.total_units(date_range)
        return Projection(
            projection_for_scope=self.project_scope(mean, total_units),
            projected_spending_over_time=self.project_series(
                series, mean, self.current_unit(date_range)
            ),
            prospective_budget_for_forecast=self.forecast_budget(
                budget, total_expenditure, total_units, self.elapsed_units(date_range)
            ),
        )
