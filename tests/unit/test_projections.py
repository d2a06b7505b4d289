"""
Test Suite: run-rate projection and budget forecast
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_explorer.date_range import resolve_date_range
from expense_explorer.models import TimeUnitAggregate
from expense_explorer.projector import SpendingProjector


class TestProjections:
    """Projection only for the period in progress"""

    @pytest.fixture
    def projector(self):
        """Initialize projector instance"""
        return SpendingProjector()

    @pytest.fixture
    def current_june(self):
        return resolve_date_range(date(2023, 6, 1), "month", now=date(2023, 6, 10))

    @pytest.fixture
    def reference_calculations(self):
        """Reference budget forecasts: (budget, spent, day of month, days in month, expected)"""
        return [
            {'scenario': 'on_track', 'budget': 1000, 'spent': 400, 'day': 10, 'expected': Decimal("30")},
            {'scenario': 'overspent', 'budget': 300, 'spent': 400, 'day': 10, 'expected': Decimal("-5")},
            {'scenario': 'first_day', 'budget': 900, 'spent': 30, 'day': 1, 'expected': Decimal("30")},
        ]

    def test_elapsed_units_month(self, projector, current_june):
        assert projector.elapsed_units(current_june) == Decimal("10")
        assert projector.total_units(current_june) == 30
        assert projector.current_unit(current_june) == 10

    def test_elapsed_units_year(self, projector):
        # 10 April 2023 is day 100
        date_range = resolve_date_range(date(2023, 1, 1), "year", now=date(2023, 4, 10))

        assert float(projector.elapsed_units(date_range)) == pytest.approx(3.2877, abs=1e-4)
        assert projector.total_units(date_range) == 12
        assert projector.current_unit(date_range) == 4

    def test_elapsed_units_past_period_is_full_count(self, projector):
        past = resolve_date_range(date(2023, 2, 1), "month", now=date(2023, 6, 10))

        assert projector.elapsed_units(past) == Decimal("28")

    def test_budget_forecast(self, projector, reference_calculations):
        for case in reference_calculations:
            forecast = projector.forecast_budget(
                Decimal(case['budget']), Decimal(case['spent']), 30, Decimal(case['day'])
            )
            assert forecast == case['expected'], f"Failed scenario {case['scenario']}"

    def test_forecast_absent_without_budget_or_spending(self, projector):
        assert projector.forecast_budget(None, Decimal("400"), 30, Decimal("10")) is None
        assert projector.forecast_budget(Decimal("1000"), Decimal("0"), 30, Decimal("10")) is None

    def test_forecast_absent_when_no_units_remain(self, projector):
        assert projector.forecast_budget(Decimal("1000"), Decimal("400"), 30, Decimal("30")) is None
        assert projector.forecast_budget(Decimal("1000"), Decimal("400"), 12, Decimal("12.03")) is None

    def test_projected_series_keeps_past_and_flattens_future(self, projector):
        series = [TimeUnitAggregate(period_key=k, total=Decimal(k), count=1) for k in range(1, 6)]

        projected = projector.project_series(series, Decimal("2.5"), current_unit=3)

        assert [u.total for u in projected] == [Decimal(1), Decimal(2), Decimal("2.5"), Decimal("2.5"), Decimal("2.5")]
        assert [u.period_key for u in projected] == [1, 2, 3, 4, 5]

    def test_projection_for_scope(self, projector):
        assert projector.project_scope(Decimal("40"), 30) == Decimal("1200")
        assert projector.project_scope(None, 30) is None

    def test_project_outside_current_period_is_empty(self, projector):
        past = resolve_date_range(date(2023, 2, 1), "month", now=date(2023, 6, 10))

        projection = projector.project(past, [], Decimal("5"), Decimal("140"), budget=Decimal("500"))

        assert projection.projection_for_scope is None
        assert projection.projected_spending_over_time is None
        assert projection.prospective_budget_for_forecast is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
