"""
Summary Data Model
Immutable value objects passed between the data sources and the summary engine
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidFilter, InvalidScope

ZERO = Decimal("0")

FILTERABLE_FIELDS = ("category", "subcategory", "vendor")


class Scope(str, Enum):
    """Reporting period requested by the caller"""

    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Any) -> "Scope":
        if isinstance(value, Scope):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidScope(f"Unsupported scope: {value!r} (expected 'month' or 'year')") from None


class Granularity(str, Enum):
    """Bucket size of the time series, the inverse of the scope"""

    DAY = "day"
    MONTH = "month"


def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary amount into a Decimal

    Args:
        value: Number or string; a decimal comma ("-76,55") and the European
            thousands form ("1.234,56") are accepted

    Returns:
        Decimal amount

    Raises:
        ValueError: Unparseable, NaN or infinite amount
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        text = str(value).strip().replace(" ", "")
        if "," in text and text.rfind(",") > text.rfind("."):
            # comma is the decimal separator; dots group thousands
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def parse_date(value: Any) -> date:
    """Parse a date object, ISO string or DD/MM/YYYY string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}") from None


@dataclass(frozen=True)
class ExpenseRecord:
    """A single expense as stored by the backend"""

    date: date
    amount: Decimal
    category: str = ""
    subcategory: str = ""
    vendor: str = ""

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ExpenseRecord":
        """
        Build a record from a storage document

        Args:
            document: Dict with either capitalised (Date, Amount, ...) or
                lower-case keys

        Returns:
            ExpenseRecord
        """
        def pick(name: str) -> Any:
            if name in document:
                return document[name]
            return document.get(name.capitalize())

        raw_date = pick("date")
        raw_amount = pick("amount")
        if raw_date is None or raw_amount is None:
            raise ValueError(f"Expense document missing date or amount: {document!r}")

        return cls(
            date=parse_date(raw_date),
            amount=parse_amount(raw_amount),
            category=pick("category") or "",
            subcategory=pick("subcategory") or "",
            vendor=pick("vendor") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "amount": float(self.amount),
            "category": self.category,
            "subcategory": self.subcategory,
            "vendor": self.vendor,
        }


@dataclass(frozen=True)
class Filter:
    """Narrows the record set to those whose ``term`` field contains ``match``"""

    term: str
    match: str

    def __post_init__(self) -> None:
        term = (self.term or "").lower()
        if term not in FILTERABLE_FIELDS:
            raise InvalidFilter(
                f"Cannot filter on {self.term!r}; expected one of {', '.join(FILTERABLE_FIELDS)}"
            )
        object.__setattr__(self, "term", term)

    def matches(self, record: ExpenseRecord) -> bool:
        value = getattr(record, self.term) or ""
        return str(self.match).lower() in value.lower()


@dataclass(frozen=True)
class TimeUnitAggregate:
    """Spending inside one canonical time unit (day of month or month of year)"""

    period_key: int
    total: Decimal = ZERO
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"period_key": self.period_key, "total": float(self.total), "count": self.count}


@dataclass(frozen=True)
class CategoryAggregate:
    """Spending inside one category or subcategory"""

    name: str
    total: Decimal
    count: int
    percent: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "total": float(self.total),
            "count": self.count,
            "percent": float(self.percent),
        }


@dataclass(frozen=True)
class RawBucket:
    """Pre-aggregated ``{key, count, sum(amount)}`` bucket from the backend"""

    key: str
    count: int
    total: Decimal


@dataclass(frozen=True)
class RawTimeBucket:
    """Pre-aggregated bucket for one time unit, labelled by its start date"""

    key: date
    count: int
    total: Decimal


@dataclass(frozen=True)
class RawAggregateBundle:
    """Validated search result: matching records plus aggregation buckets"""

    records: Tuple[ExpenseRecord, ...] = ()
    categories: Tuple[RawBucket, ...] = ()
    subcategories: Tuple[RawBucket, ...] = ()
    time_units: Tuple[RawTimeBucket, ...] = ()

    # Counts and totals come from the category buckets, which cover every
    # matching document; a backend may cap the records it returns.

    @property
    def expense_count(self) -> int:
        if self.categories:
            return sum(bucket.count for bucket in self.categories)
        return len(self.records)

    @property
    def total_expenditure(self) -> Decimal:
        if self.categories:
            return sum((bucket.total for bucket in self.categories), ZERO)
        return sum((record.amount for record in self.records), ZERO)

    @property
    def is_truncated(self) -> bool:
        return bool(self.records) and len(self.records) < self.expense_count


@dataclass(frozen=True)
class DateRange:
    """Resolved bounds and bucketing for a requested scope"""

    scope: Scope
    queried_date: date
    now: date
    lower_bound: date
    upper_bound: date
    granularity: Granularity
    is_current_period: bool

    def contains(self, day: date) -> bool:
        return self.lower_bound <= day <= self.upper_bound


def _decimal_or_none(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


@dataclass(frozen=True)
class Summary:
    """Period-scoped spending analytics; absent values are ``None``"""

    scope: Scope
    lower_bound: date
    upper_bound: date
    is_current_period: bool
    total_expenditure: Decimal
    number_of_expenses: int
    expenses: Tuple[ExpenseRecord, ...] = ()
    spending_by_category: Tuple[CategoryAggregate, ...] = ()
    spending_by_subcategory: Tuple[CategoryAggregate, ...] = ()
    spending_over_time: Tuple[TimeUnitAggregate, ...] = ()
    average_per_unit: Optional[Decimal] = None
    median_per_unit: Optional[Decimal] = None
    mode_per_unit: Optional[Decimal] = None
    projection_for_scope: Optional[Decimal] = None
    projected_spending_over_time: Optional[Tuple[TimeUnitAggregate, ...]] = None
    prospective_budget_for_forecast: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        """Render a JSON-safe dict"""
        projected = self.projected_spending_over_time
        return {
            "scope": self.scope.value,
            "lower_bound": self.lower_bound.isoformat(),
            "upper_bound": self.upper_bound.isoformat(),
            "is_current_period": self.is_current_period,
            "total_expenditure": float(self.total_expenditure),
            "number_of_expenses": self.number_of_expenses,
            "expenses": [expense.to_dict() for expense in self.expenses],
            "spending_by_category": [item.to_dict() for item in self.spending_by_category],
            "spending_by_subcategory": [item.to_dict() for item in self.spending_by_subcategory],
            "spending_over_time": [unit.to_dict() for unit in self.spending_over_time],
            "average_per_unit": _decimal_or_none(self.average_per_unit),
            "median_per_unit": _decimal_or_none(self.median_per_unit),
            "mode_per_unit": _decimal_or_none(self.mode_per_unit),
            "projection_for_scope": _decimal_or_none(self.projection_for_scope),
            "projected_spending_over_time": (
                None if projected is None else [unit.to_dict() for unit in projected]
            ),
            "prospective_budget_for_forecast": _decimal_or_none(self.prospective_budget_for_forecast),
        }
