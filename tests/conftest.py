"""Shared pytest configuration for the project test suite."""
from __future__ import annotations

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, List

import pytest


# Ensure the repository root (which contains the ``expense_explorer`` package) is importable.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from expense_explorer.models import ExpenseRecord  # noqa: E402


@pytest.fixture
def make_record() -> Callable[..., ExpenseRecord]:
    """Factory for expense records with sensible defaults."""

    def _make(day: date, amount, category: str = "food", subcategory: str = "groceries",
              vendor: str = "market") -> ExpenseRecord:
        return ExpenseRecord(
            date=day,
            amount=Decimal(str(amount)),
            category=category,
            subcategory=subcategory,
            vendor=vendor,
        )

    return _make


@pytest.fixture
def june_records(make_record) -> List[ExpenseRecord]:
    """A sparse month of spending in June 2023 (30 days)."""

    return [
        make_record(date(2023, 6, 1), 10, "food", "groceries", "Tesco"),
        make_record(date(2023, 6, 3), 20, "transport", "taxi", "Uber"),
        make_record(date(2023, 6, 3), 5, "food", "coffee", "Costa"),
        make_record(date(2023, 6, 15), 40, "recreation", "cinema", "Vue"),
        make_record(date(2023, 6, 30), 25, "food", "groceries", "Aldi"),
    ]
