"""Storage/search backends that feed the summary engine.

Every data source receives a :class:`SearchRequest` (date range, optional
filter, bucket granularity) and answers with a :class:`RawAggregateBundle`:
the matching records plus category, subcategory and time-unit buckets. The
bundle is validated here, once, so the engine never has to re-check the shape
of a backend response.

Three backends are provided:

* ``InMemoryDataSource`` aggregates a list of records in-process.
* ``ElasticsearchDataSource`` issues a bool/range/match search with
  ``date_histogram`` and ``terms`` aggregations over HTTP.
* ``PostgresDataSource`` runs the equivalent ``GROUP BY`` queries against an
  ``expenses`` table.

Blocking clients run inside ``asyncio.to_thread`` so the service stays
responsive while a search is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import psycopg2
import requests
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from .aggregator import aggregate_records
from .errors import DataSourceUnavailable
from .models import (
    DateRange,
    ExpenseRecord,
    Filter,
    Granularity,
    RawAggregateBundle,
    RawBucket,
    RawTimeBucket,
    parse_amount,
)

LOGGER = logging.getLogger("expense_explorer.data_sources")

MAX_RESULTS = 10000

CATEGORY_AGGREGATION = "category_spending_breakdown"
SUBCATEGORY_AGGREGATION = "subcategory_spending_breakdown"
TIME_AGGREGATION = "time_spending_breakdown"
AGGREGATION_NAMES = (CATEGORY_AGGREGATION, SUBCATEGORY_AGGREGATION, TIME_AGGREGATION)

# Filter terms mapped onto each backend's field names
ELASTIC_FIELDS = {"category": "Category", "subcategory": "Subcategory", "vendor": "Vendor"}
POSTGRES_COLUMNS = {"category": "category", "subcategory": "subcategory", "vendor": "vendor"}


@dataclass(frozen=True)
class SearchRequest:
    """Query sent to a data source."""

    lower_bound: date
    upper_bound: date
    granularity: Granularity
    expense_filter: Optional[Filter] = None

    @classmethod
    def for_range(cls, date_range: DateRange, expense_filter: Optional[Filter] = None) -> "SearchRequest":
        return cls(
            lower_bound=date_range.lower_bound,
            upper_bound=date_range.upper_bound,
            granularity=date_range.granularity,
            expense_filter=expense_filter,
        )

    def contains(self, day: date) -> bool:
        return self.lower_bound <= day <= self.upper_bound

    def date_range_strings(self) -> Tuple[str, str]:
        """Bounds in the backend's fixed ``DD/MM/YYYY`` format."""

        return self.lower_bound.strftime("%d/%m/%Y"), self.upper_bound.strftime("%d/%m/%Y")


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so ``text`` matches literally."""

    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DataSource(Protocol):
    async def search(self, request: SearchRequest) -> RawAggregateBundle:
        ...


def _parse_time_label(bucket: Dict[str, Any]) -> date:
    label = bucket.get("key_as_string")
    if label:
        for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
            try:
                return datetime.strptime(label, fmt).date()
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(label.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    key = bucket.get("key")
    if isinstance(key, (int, float)):
        return datetime.fromtimestamp(key / 1000, tz=timezone.utc).date()
    raise ValueError(f"Unrecognised time bucket label: {label or key!r}")


def _bucket_total(bucket: Dict[str, Any]) -> Any:
    value = (bucket.get("unit_total") or {}).get("value")
    return 0 if value is None else value


def parse_search_response(payload: Any) -> RawAggregateBundle:
    """Validate an Elasticsearch-shaped search response into a bundle.

    Raises:
        DataSourceUnavailable: the response lacks hits or any of the three
            aggregations, or a document/bucket cannot be parsed.
    """

    if isinstance(payload, dict) and "hits" not in payload and isinstance(payload.get("body"), dict):
        payload = payload["body"]
    if not isinstance(payload, dict):
        raise DataSourceUnavailable("Search response is empty")

    hits = (payload.get("hits") or {}).get("hits")
    if not isinstance(hits, list):
        raise DataSourceUnavailable("Search response has no hits")

    aggregations = payload.get("aggregations")
    if not isinstance(aggregations, dict):
        raise DataSourceUnavailable("Search response has no aggregations")
    missing = [
        name for name in AGGREGATION_NAMES
        if not isinstance((aggregations.get(name) or {}).get("buckets"), list)
    ]
    if missing:
        raise DataSourceUnavailable(f"Search response is missing aggregations: {', '.join(missing)}")

    try:
        records = tuple(ExpenseRecord.from_document(hit.get("_source") or {}) for hit in hits)
        categories, subcategories = (
            tuple(
                RawBucket(
                    key=str(bucket["key"]),
                    count=int(bucket.get("doc_count", 0)),
                    total=parse_amount(_bucket_total(bucket)),
                )
                for bucket in aggregations[name]["buckets"]
            )
            for name in (CATEGORY_AGGREGATION, SUBCATEGORY_AGGREGATION)
        )
        time_units = tuple(
            RawTimeBucket(
                key=_parse_time_label(bucket),
                count=int(bucket.get("doc_count", 0)),
                total=parse_amount(_bucket_total(bucket)),
            )
            for bucket in aggregations[TIME_AGGREGATION]["buckets"]
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DataSourceUnavailable(f"Malformed search response: {exc}") from exc

    return RawAggregateBundle(
        records=records,
        categories=categories,
        subcategories=subcategories,
        time_units=time_units,
    )


class InMemoryDataSource:
    """Serves searches from a fixed list of records."""

    def __init__(self, records: Iterable[ExpenseRecord] = ()) -> None:
        self.records: List[ExpenseRecord] = list(records)

    async def search(self, request: SearchRequest) -> RawAggregateBundle:
        return aggregate_records(self.records, request, request.expense_filter)


def build_search_query(request: SearchRequest) -> Dict[str, Any]:
    """Search body with the three aggregations the engine consumes."""

    lower, upper = request.date_range_strings()
    must: List[Dict[str, Any]] = [
        {"range": {"Date": {"gte": lower, "lte": upper, "format": "dd/MM/yyyy"}}}
    ]
    if request.expense_filter is not None:
        field = ELASTIC_FIELDS[request.expense_filter.term]
        must.append({"match": {field: request.expense_filter.match}})

    unit_total = {"unit_total": {"sum": {"field": "Amount"}}}
    return {
        "query": {"bool": {"must": must}},
        "size": MAX_RESULTS,
        "aggs": {
            TIME_AGGREGATION: {
                "date_histogram": {
                    "field": "Date",
                    "calendar_interval": request.granularity.value,
                    "format": "yyyy-MM-dd",
                },
                "aggs": unit_total,
            },
            CATEGORY_AGGREGATION: {
                "terms": {"field": "Category", "size": MAX_RESULTS, "missing": ""},
                "aggs": unit_total,
            },
            SUBCATEGORY_AGGREGATION: {
                "terms": {"field": "Fullcategory", "size": MAX_RESULTS, "missing": ""},
                "aggs": unit_total,
            },
        },
        "sort": [{"Date": {"order": "asc"}}],
    }


class ElasticsearchDataSource:
    """Runs searches against an Elasticsearch index over HTTP."""

    def __init__(
        self,
        base_url: str,
        index: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.index = index
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/{self.index}/_search"

    def _search_sync(self, request: SearchRequest) -> Dict[str, Any]:
        response = self.session.post(self.search_url, json=build_search_query(request), timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def search(self, request: SearchRequest) -> RawAggregateBundle:
        try:
            payload = await asyncio.to_thread(self._search_sync, request)
        except requests.RequestException as exc:
            LOGGER.error("Elasticsearch search on %s failed: %s", self.search_url, exc)
            raise DataSourceUnavailable("Elasticsearch search failed") from exc
        except ValueError as exc:
            LOGGER.error("Elasticsearch returned a non-JSON body: %s", exc)
            raise DataSourceUnavailable("Elasticsearch returned an unreadable response") from exc
        return parse_search_response(payload)


class PostgresDataSource:
    """Reads expenses from PostgreSQL and aggregates them with ``GROUP BY``."""

    RECORDS_QUERY = sql.SQL(
        "SELECT expense_date, amount, category, subcategory, vendor "
        "FROM expenses WHERE {where} ORDER BY expense_date ASC LIMIT %s"
    )
    GROUP_QUERY = sql.SQL(
        "SELECT {column} AS key, COUNT(*) AS doc_count, COALESCE(SUM(amount), 0) AS total "
        "FROM expenses WHERE {where} GROUP BY {column}"
    )
    TIME_QUERY = sql.SQL(
        "SELECT date_trunc({unit}, expense_date)::date AS key, COUNT(*) AS doc_count, "
        "COALESCE(SUM(amount), 0) AS total "
        "FROM expenses WHERE {where} GROUP BY 1 ORDER BY 1"
    )

    def __init__(self, db_params: Dict[str, Any]) -> None:
        self.db_params = db_params

    def _connect(self):
        return psycopg2.connect(**self.db_params)

    @staticmethod
    def _where(request: SearchRequest) -> Tuple[sql.Composable, List[Any]]:
        clauses: List[sql.Composable] = [sql.SQL("expense_date BETWEEN %s AND %s")]
        params: List[Any] = [request.lower_bound, request.upper_bound]
        if request.expense_filter is not None:
            column = POSTGRES_COLUMNS[request.expense_filter.term]
            clauses.append(sql.SQL("{} ILIKE %s ESCAPE '\\'").format(sql.Identifier(column)))
            params.append(f"%{escape_like(request.expense_filter.match)}%")
        return sql.SQL(" AND ").join(clauses), params

    @staticmethod
    def _buckets(rows: Sequence[Dict[str, Any]]) -> Tuple[RawBucket, ...]:
        return tuple(
            RawBucket(key=row["key"] or "", count=int(row["doc_count"]), total=parse_amount(row["total"]))
            for row in rows
        )

    def _search_sync(self, request: SearchRequest) -> RawAggregateBundle:
        where, params = self._where(request)
        conn = self._connect()
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                    cursor.execute(self.RECORDS_QUERY.format(where=where), [*params, MAX_RESULTS])
                    records = tuple(
                        ExpenseRecord(
                            date=row["expense_date"],
                            amount=parse_amount(row["amount"]),
                            category=row["category"] or "",
                            subcategory=row["subcategory"] or "",
                            vendor=row["vendor"] or "",
                        )
                        for row in cursor.fetchall()
                    )

                    grouped = []
                    for column in ("category", "subcategory"):
                        cursor.execute(
                            self.GROUP_QUERY.format(column=sql.Identifier(column), where=where),
                            params,
                        )
                        grouped.append(self._buckets(cursor.fetchall()))

                    cursor.execute(
                        self.TIME_QUERY.format(unit=sql.Literal(request.granularity.value), where=where),
                        params,
                    )
                    time_units = tuple(
                        RawTimeBucket(key=row["key"], count=int(row["doc_count"]), total=parse_amount(row["total"]))
                        for row in cursor.fetchall()
                    )
        finally:
            conn.close()

        return RawAggregateBundle(
            records=records,
            categories=grouped[0],
            subcategories=grouped[1],
            time_units=time_units,
        )

    async def search(self, request: SearchRequest) -> RawAggregateBundle:
        try:
            return await asyncio.to_thread(self._search_sync, request)
        except psycopg2.Error as exc:
            LOGGER.error("PostgreSQL expense search failed: %s", exc)
            raise DataSourceUnavailable("PostgreSQL expense search failed") from exc
