"""
Test Suite: summary orchestration scenarios and properties
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from expense_explorer.errors import DataSourceUnavailable, InvalidScope
from expense_explorer.models import Filter, RawAggregateBundle, RawBucket, RawTimeBucket, Scope
from expense_explorer.summary import compute_summary


class TestSummaryScenarios:
    """Reference scenarios"""

    def test_past_month(self, make_record):
        """Scenario A: past month, mean over all 30 days, no projection"""
        records = [
            make_record(date(2023, 6, 1), 10),
            make_record(date(2023, 6, 3), 20),
            make_record(date(2023, 6, 10), 30),
        ]

        summary = compute_summary(records, "month", date(2023, 6, 15), now=date(2024, 1, 1))

        assert summary.is_current_period is False
        assert len(summary.spending_over_time) == 30
        assert [u.total for u in summary.spending_over_time[:3]] == [Decimal(10), 0, Decimal(20)]
        assert summary.average_per_unit == Decimal(60) / 30
        assert summary.median_per_unit == 0
        assert summary.mode_per_unit == 0
        assert summary.projection_for_scope is None
        assert summary.projected_spending_over_time is None
        assert summary.prospective_budget_for_forecast is None

    def test_current_year(self, make_record):
        """Scenario B: day 100 of the current year, 500 spent"""
        records = [
            make_record(date(2023, 1, 15), 200),
            make_record(date(2023, 2, 15), 100),
            make_record(date(2023, 4, 2), 200),
        ]

        summary = compute_summary(records, "year", date(2023, 2, 1), now=date(2023, 4, 10))

        assert summary.is_current_period is True
        assert summary.total_expenditure == Decimal(500)
        assert len(summary.spending_over_time) == 12
        assert float(summary.average_per_unit) == pytest.approx(152.08, abs=0.01)
        assert float(summary.projection_for_scope) == pytest.approx(1825, abs=1)

    def test_no_matching_records(self):
        """Scenario C: nothing spent, nothing raised"""
        summary = compute_summary([], "month", date(2023, 6, 15), now=date(2023, 6, 20), budget=1000)

        assert summary.total_expenditure == 0
        assert summary.number_of_expenses == 0
        assert summary.spending_by_category == ()
        assert summary.spending_by_subcategory == ()
        assert len(summary.spending_over_time) == 30
        assert summary.average_per_unit is None
        assert summary.median_per_unit is None
        assert summary.mode_per_unit is None
        assert summary.projection_for_scope is None
        assert summary.projected_spending_over_time is None
        assert summary.prospective_budget_for_forecast is None

    def test_budget_forecast_for_current_month(self, make_record):
        """Scenario D: 400 of 1000 spent by day 10 of 30"""
        records = [make_record(date(2023, 6, 2), 150), make_record(date(2023, 6, 9), 250)]

        summary = compute_summary(records, "month", date(2023, 6, 1), now=date(2023, 6, 10), budget=1000)

        assert summary.prospective_budget_for_forecast == Decimal(30)
        assert summary.average_per_unit == Decimal(40)
        assert summary.projection_for_scope == Decimal(1200)


class TestSummaryProperties:
    """Invariants that hold for any input"""

    def test_category_totals_match_expenditure(self, june_records):
        summary = compute_summary(june_records, "month", date(2023, 6, 1), now=date(2024, 1, 1))

        assert sum(c.total for c in summary.spending_by_category) == summary.total_expenditure
        assert sum(c.total for c in summary.spending_by_subcategory) == summary.total_expenditure
        assert float(sum(c.percent for c in summary.spending_by_category)) == pytest.approx(100)
        assert all(0 <= c.percent <= 100 for c in summary.spending_by_category)

    def test_category_order(self, june_records):
        summary = compute_summary(june_records, "month", date(2023, 6, 1), now=date(2024, 1, 1))

        assert [c.name for c in summary.spending_by_category] == ["food", "recreation", "transport"]

    def test_end_of_period_has_no_forecast(self, make_record):
        records = [make_record(date(2023, 6, 2), 100)]

        summary = compute_summary(records, "month", date(2023, 6, 1), now=date(2023, 6, 30), budget=500)

        assert summary.is_current_period is True
        assert float(summary.projection_for_scope) == pytest.approx(100)
        assert summary.prospective_budget_for_forecast is None

    def test_current_month_statistics_ignore_future_days(self, make_record):
        records = [make_record(date(2023, 6, d), 10) for d in (1, 2, 3)]

        summary = compute_summary(records, "month", date(2023, 6, 1), now=date(2023, 6, 4))

        # days 1-4 have happened: 10, 10, 10, 0
        assert summary.median_per_unit == Decimal(10)
        assert summary.mode_per_unit == Decimal(10)
        assert summary.average_per_unit == Decimal("7.5")

    def test_projected_series_shape(self, make_record):
        records = [make_record(date(2023, 6, 1), 12), make_record(date(2023, 6, 5), 8)]

        summary = compute_summary(records, "month", date(2023, 6, 1), now=date(2023, 6, 5))
        projected = summary.projected_spending_over_time

        assert len(projected) == 30
        assert projected[0].total == Decimal(12)
        assert projected[3].total == 0
        assert all(u.total == Decimal(4) for u in projected[4:])

    def test_idempotent(self, june_records):
        kwargs = dict(now=date(2023, 6, 20), budget=500)

        first = compute_summary(june_records, "month", date(2023, 6, 1), **kwargs)
        second = compute_summary(june_records, "month", date(2023, 6, 1), **kwargs)

        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_filter_applies_to_records(self, june_records):
        summary = compute_summary(
            june_records, "month", date(2023, 6, 1), now=date(2024, 1, 1),
            expense_filter=Filter(term="category", match="food"),
        )

        assert summary.total_expenditure == Decimal(40)
        assert summary.number_of_expenses == 3

    def test_prebucketed_bundle_without_records(self):
        bundle = RawAggregateBundle(
            categories=(RawBucket("food", 3, Decimal(30)), RawBucket("rent", 1, Decimal(70))),
            subcategories=(RawBucket("groceries", 3, Decimal(30)), RawBucket("flat", 1, Decimal(70))),
            time_units=(RawTimeBucket(date(2023, 3, 1), 4, Decimal(100)),),
        )

        summary = compute_summary(bundle, Scope.YEAR, date(2023, 1, 1), now=date(2024, 5, 5))

        assert summary.number_of_expenses == 4
        assert summary.total_expenditure == Decimal(100)
        assert summary.spending_over_time[2].total == Decimal(100)
        assert summary.average_per_unit == Decimal(100) / 12
        assert summary.expenses == ()

    def test_invalid_scope_rejected_first(self):
        with pytest.raises(InvalidScope):
            compute_summary(None, "quarter", date(2023, 1, 1), now=date(2023, 1, 1))

    def test_missing_aggregation_data_raises(self):
        with pytest.raises(DataSourceUnavailable):
            compute_summary(None, "month", date(2023, 1, 1), now=date(2023, 1, 1))

    def test_summary_is_immutable(self, june_records):
        summary = compute_summary(june_records, "month", date(2023, 6, 1), now=date(2024, 1, 1))

        with pytest.raises(AttributeError):
            summary.total_expenditure = Decimal(0)
        assert isinstance(summary.spending_by_category, tuple)

    def test_to_dict_is_json_safe(self, june_records):
        summary = compute_summary(june_records, "month", date(2023, 6, 1), now=date(2024, 1, 1))
        payload = json.loads(json.dumps(summary.to_dict()))

        assert payload["scope"] == "month"
        assert payload["lower_bound"] == "2023-06-01"
        assert payload["projection_for_scope"] is None
        assert payload["total_expenditure"] == 100.0
        assert len(payload["spending_over_time"]) == 30


class TestSummaryInputGuards:
    """Inputs that must never reach the output as NaN, Infinity or a mismatched total"""

    @pytest.mark.parametrize("budget", ["NaN", "Infinity", "-inf", Decimal("NaN"), float("inf")])
    def test_non_finite_budget_rejected(self, june_records, budget):
        with pytest.raises(ValueError):
            compute_summary(june_records, "month", date(2023, 6, 1), now=date(2023, 6, 10), budget=budget)

    def test_truncated_records_use_bucket_totals(self, make_record):
        # backend capped the hits at one record but aggregated all three expenses
        bundle = RawAggregateBundle(
            records=(make_record(date(2023, 6, 2), 10),),
            categories=(RawBucket("food", 3, Decimal(30)),),
            subcategories=(RawBucket("groceries", 3, Decimal(30)),),
            time_units=(RawTimeBucket(date(2023, 6, 2), 1, Decimal(10)),
                        RawTimeBucket(date(2023, 6, 4), 2, Decimal(20))),
        )

        summary = compute_summary(bundle, "month", date(2023, 6, 1), now=date(2024, 1, 1))

        assert bundle.is_truncated is True
        assert summary.total_expenditure == Decimal(30)
        assert summary.number_of_expenses == 3
        assert sum(c.total for c in summary.spending_by_category) == summary.total_expenditure
        assert sum(u.total for u in summary.spending_over_time) == summary.total_expenditure
        assert summary.average_per_unit == Decimal(30) / 30
        assert len(summary.expenses) == 1
