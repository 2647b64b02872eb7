"""Analytics query client.

Runs one rendered Kusto query against an Application Insights style REST
endpoint and returns the single scalar it produces (first cell of the first
row of the first table).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from kpi_spine.errors import (
    AnalyticsNetworkError,
    AnalyticsPayloadError,
    AnalyticsResponseError,
    AnalyticsTimeoutError,
    ErrorContext,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class AnalyticsConnection:
    """Everything needed to query one application's analytics endpoint."""

    application: str
    url: str
    role_name: str
    headers: dict[str, str] = field(default_factory=dict)


class AnalyticsClient(Protocol):
    """Executes a single query and returns its scalar result."""

    def execute(self, connection: AnalyticsConnection, query: str) -> Any: ...


class HttpAnalyticsClient:
    """
    Analytics client over HTTP.

    One ``httpx.Client`` is shared by every call; httpx clients are safe to
    use from several threads. Use as a context manager or call ``close()``.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(timeout=timeout, verify=verify, transport=transport)

    def __enter__(self) -> HttpAnalyticsClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def execute(self, connection: AnalyticsConnection, query: str) -> Any:
        context = ErrorContext(application=connection.application, url=connection.url)
        try:
            response = self._client.post(
                connection.url,
                json={"query": query},
                headers=connection.headers,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise AnalyticsTimeoutError(
                f"Analytics query timed out for {connection.application}", context=context, cause=e
            )
        except httpx.HTTPStatusError as e:
            raise AnalyticsResponseError(e.response.status_code, context=context, cause=e)
        except httpx.HTTPError as e:
            raise AnalyticsNetworkError(
                f"Analytics endpoint unreachable for {connection.application}: {e}",
                context=context,
                cause=e,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AnalyticsPayloadError("Analytics response is not JSON", context=context, cause=e)

        logger.debug(
            "analytics_query_completed",
            application=connection.application,
            status=response.status_code,
        )
        return extract_scalar(payload, context=context)


def extract_scalar(payload: Any, context: ErrorContext | None = None) -> Any:
    """Pull the first cell of the first row of the first table."""
    try:
        row = payload["tables"][0]["rows"][0]
    except (KeyError, IndexError, TypeError) as e:
        raise AnalyticsPayloadError(
            "Analytics response has no result row", context=context, cause=e
        )
    if isinstance(row, list):
        if not row:
            raise AnalyticsPayloadError("Analytics result row is empty", context=context)
        return row[0]
    return row


__all__ = ["AnalyticsConnection", "AnalyticsClient", "HttpAnalyticsClient", "extract_scalar"]
