"""HTTP API exposing the spending summary.

``GET /api/summary`` accepts ``date`` (ISO ``YYYY-MM-DD`` or epoch seconds),
``scope`` (``month`` or ``year``), an optional ``term``/``match`` filter pair and
an optional ``budget``. The response is the JSON rendering of
:class:`~expense_explorer.models.Summary`. Invalid input yields ``400`` and a
failing data source yields ``503``; a failed fetch is never reported as an
all-zero summary.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Mapping, Optional

from aiohttp import web

from .data_sources import DataSource, ElasticsearchDataSource, InMemoryDataSource, PostgresDataSource
from .errors import DataSourceUnavailable
from .models import Filter, parse_amount, parse_date
from .settings import Settings
from .summary import SummaryService

LOGGER = logging.getLogger("expense_explorer.api")


def build_data_source(settings: Settings) -> DataSource:
    """Instantiate the backend selected by ``SUMMARY_DATA_SOURCE``."""

    if settings.data_source == "elasticsearch":
        return ElasticsearchDataSource(
            settings.elastic_url, settings.elastic_index, timeout=settings.elastic_timeout
        )
    if settings.data_source == "postgres":
        return PostgresDataSource(settings.db_params)
    LOGGER.warning("Using an empty in-memory data source; set SUMMARY_DATA_SOURCE for real data")
    return InMemoryDataSource()


def parse_queried_date(raw: Optional[str], default: date) -> date:
    """Accept an ISO date or an epoch timestamp in seconds."""

    if not raw:
        return default
    if raw.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(raw), tz=timezone.utc).date()
    return parse_date(raw)


def parse_filter(query: Mapping[str, str]) -> Optional[Filter]:
    term = query.get("term")
    match = query.get("match")
    if not term and not match:
        return None
    if not term or not match:
        raise ValueError("Both 'term' and 'match' are required to filter")
    return Filter(term=term, match=match)


def parse_budget(raw: Optional[str]) -> Optional[Decimal]:
    if raw in (None, ""):
        return None
    return parse_amount(raw)


class SummaryApplication:
    """Encapsulates the aiohttp application and summary handlers."""

    def __init__(
        self,
        data_source: Optional[DataSource] = None,
        *,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self.settings = settings or Settings.from_environment()
        self.clock = clock
        self.service = SummaryService(data_source or build_data_source(self.settings), clock=clock)
        self.app = web.Application()
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/api/summary", self.handle_summary)

    def today(self) -> date:
        return self.clock() if self.clock else date.today()

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def handle_summary(self, request: web.Request) -> web.Response:
        query = request.query
        try:
            queried_date = parse_queried_date(query.get("date"), self.today())
            summary = await self.service.get_summary(
                queried_date,
                query.get("scope", "month"),
                expense_filter=parse_filter(query),
                budget=parse_budget(query.get("budget")),
            )
        except DataSourceUnavailable as exc:
            LOGGER.error("Summary unavailable: %s", exc)
            return web.json_response({"error": str(exc)}, status=503)
        except (ValueError, OverflowError, OSError) as exc:
            LOGGER.info("Rejected summary request %s: %s", dict(query), exc)
            return web.json_response({"error": str(exc)}, status=400)

        return web.json_response(summary.to_dict())


def configure_logging(settings: Settings) -> None:
    """Log to the console, and to ``LOG_DIR`` when it is writable."""

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    file_logging_status = None
    log_file = os.path.join(settings.log_dir, "summary-api.log")
    try:
        os.makedirs(settings.log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a"))
        file_logging_status = f"Logging to {log_file}"
    except OSError as e:
        file_logging_status = f"File logging disabled for {settings.log_dir}: {e}"

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    LOGGER.info(file_logging_status)


def create_app(data_source: Optional[DataSource] = None) -> web.Application:
    settings = Settings.from_environment()
    configure_logging(settings)
    return SummaryApplication(data_source, settings=settings).app


def main() -> None:
    settings = Settings.from_environment()
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
