"""Fetch orchestration: one gap request -> one month record."""

from __future__ import annotations

import math
from collections.abc import Sequence
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass, field
from typing import Any

import structlog

from kpi_spine.analytics import AnalyticsClient
from kpi_spine.engine.connection import DEFAULT_BASE_URL, resolve_connection
from kpi_spine.engine.gaps import GapRequest
from kpi_spine.errors import AnalyticsError, KpiSpineError, MetricValueError
from kpi_spine.models import Application, MonthRecord, QueryDefinition
from kpi_spine.months import collection_window, format_us_date
from kpi_spine.result import Err, Ok, Result

logger = structlog.get_logger()


def coerce_metric(value: Any) -> int | float:
    """Coerce an analytics scalar to a number, rejecting anything else."""
    if value is None or isinstance(value, bool):
        raise MetricValueError(f"Metric value is not numeric: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise MetricValueError(f"Metric value is not numeric: {value!r}")
    else:
        raise MetricValueError(f"Metric value is not numeric: {value!r}")

    if not math.isfinite(number):
        raise MetricValueError(f"Metric value is not finite: {value!r}")
    return number


@dataclass
class PendingMonth:
    """In-flight queries for one request; ``result()`` joins them."""

    request: GapRequest
    futures: list[tuple[QueryDefinition, Future]] = field(default_factory=list)
    error: Exception | None = None

    def result(self) -> Result[MonthRecord]:
        if self.error is not None:
            return Err(self.error)

        wait([future for _, future in self.futures])

        values: dict[str, int | float] = {}
        for query, future in self.futures:
            try:
                values[query.name] = coerce_metric(future.result())
            except KpiSpineError as e:
                return Err(self._annotate(e, query))
            except Exception as e:
                wrapped = AnalyticsError(f"Analytics query {query.name} failed: {e}", cause=e)
                return Err(self._annotate(wrapped, query))

        return Ok(MonthRecord(month=self.request.month, values=values))

    def _annotate(self, error: KpiSpineError, query: QueryDefinition) -> KpiSpineError:
        return error.with_context(
            application=self.request.application.name,
            month=format_us_date(self.request.month),
            query=query.name,
        )


class MonthFetcher:
    """
    Submits every catalog query for a request to a shared executor.

    ``submit`` never blocks, so all requests of a run can be in flight at
    once; ``PendingMonth.result`` waits for the queries of one request.
    """

    def __init__(
        self,
        registry: Sequence[Application],
        catalog: Sequence[QueryDefinition],
        client: AnalyticsClient,
        executor: Executor,
        *,
        base_url: str = DEFAULT_BASE_URL,
    ):
        self.registry = registry
        self.catalog = catalog
        self.client = client
        self.executor = executor
        self.base_url = base_url

    def submit(self, request: GapRequest) -> PendingMonth:
        match resolve_connection(self.registry, request.application.name, base_url=self.base_url):
            case Err(error):
                return PendingMonth(request=request, error=error)
            case Ok(connection):
                pass

        from_date, to_date = collection_window(request.target)
        pending = PendingMonth(request=request)
        for query in self.catalog:
            rendered = query.render(from_date, to_date, connection.role_name)
            pending.futures.append(
                (query, self.executor.submit(self.client.execute, connection, rendered))
            )

        logger.debug(
            "month_fetch_submitted",
            application=request.application.name,
            month=format_us_date(request.month),
            window_from=format_us_date(from_date),
            window_to=format_us_date(to_date),
            queries=len(pending.futures),
        )
        return pending


__all__ = ["coerce_metric", "PendingMonth", "MonthFetcher"]
