"""Exception types raised by the summary engine and its data sources."""


class SummaryError(Exception):
    """Base exception for Expense Explorer."""


class DataSourceUnavailable(SummaryError):
    """The storage backend failed or returned a malformed aggregation payload."""


class InvalidScope(SummaryError, ValueError):
    """Scope outside ``month`` / ``year``."""


class InvalidFilter(SummaryError, ValueError):
    """Filter term that does not name a filterable expense field."""
