"""
Expense Explorer - Spending Summary Engine
"""

from .aggregator import CategoryAggregator, aggregate_records
from .data_sources import (
    ElasticsearchDataSource,
    InMemoryDataSource,
    PostgresDataSource,
    SearchRequest,
    parse_search_response,
)
from .date_range import resolve_date_range
from .errors import DataSourceUnavailable, InvalidFilter, InvalidScope, SummaryError
from .models import (
    CategoryAggregate,
    ExpenseRecord,
    Filter,
    RawAggregateBundle,
    Scope,
    Summary,
    TimeUnitAggregate,
)
from .projector import SpendingProjector
from .summary import SummaryService, compute_summary
from .unit_statistics import UnitStatisticsCalculator

__all__ = [
    'CategoryAggregate',
    'CategoryAggregator',
    'DataSourceUnavailable',
    'ElasticsearchDataSource',
    'ExpenseRecord',
    'Filter',
    'InMemoryDataSource',
    'InvalidFilter',
    'InvalidScope',
    'PostgresDataSource',
    'RawAggregateBundle',
    'Scope',
    'SearchRequest',
    'SpendingProjector',
    'Summary',
    'SummaryError',
    'SummaryService',
    'TimeUnitAggregate',
    'UnitStatisticsCalculator',
    'aggregate_records',
    'compute_summary',
    'parse_search_response',
    'resolve_date_range',
]

__version__ = '0.1.0'
