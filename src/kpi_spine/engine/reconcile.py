"""Reconciliation: detect gaps, fetch them concurrently, merge serially."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import structlog

from kpi_spine.analytics import AnalyticsClient
from kpi_spine.config import RefreshPolicy
from kpi_spine.engine.connection import DEFAULT_BASE_URL
from kpi_spine.engine.fetch import MonthFetcher
from kpi_spine.engine.gaps import EPOCH_FLOOR, GapPlan, GapRequest, detect_gaps
from kpi_spine.errors import error_details, is_retryable
from kpi_spine.models import Application, ApplicationMetrics, MetricsStore, MonthRecord, QueryDefinition
from kpi_spine.months import format_us_date
from kpi_spine.result import Err, Ok

logger = structlog.get_logger()


@dataclass
class RequestFailure:
    """A gap request that produced no record."""

    application: str
    month: date
    error: Exception

    def to_dict(self) -> dict[str, Any]:
        return {
            "application": self.application,
            "month": format_us_date(self.month),
            "retryable": is_retryable(self.error),
            "error": error_details(self.error),
        }


@dataclass
class MergedMonth:
    application: str
    month: date
    replaced: bool = False


@dataclass
class ReconcileOutcome:
    """
    Result of one reconciliation.

    ``changed`` is true whenever the plan scheduled at least one request; the
    caller persists ``store`` exactly once in that case.
    """

    store: MetricsStore
    plan: GapPlan
    changed: bool
    merged: list[MergedMonth] = field(default_factory=list)
    failures: list[RequestFailure] = field(default_factory=list)

    @property
    def new_applications(self) -> list[str]:
        return [app.name for app in self.plan.new_applications if self.store.find(app.name)]

    def summary(self) -> dict[str, Any]:
        return {
            "changed": self.changed,
            "scheduled": len(self.plan.requests),
            "merged": len(self.merged),
            "replaced": sum(1 for item in self.merged if item.replaced),
            "failed": len(self.failures),
            "new_applications": self.new_applications,
            "anchor": format_us_date(self.plan.anchor),
        }


def pool_size(registry: Sequence[Application], catalog: Sequence[QueryDefinition], max_workers: int) -> int:
    """Worker count: one per (application, query) pair, capped at ``max_workers``."""
    return max(1, min(max_workers, len(registry) * len(catalog)))


def merge_record(store: MetricsStore, request: GapRequest, record: MonthRecord) -> MergedMonth:
    """Apply one completed record to the store, creating the application entry if new."""
    entry = store.find(request.application.name)
    if entry is None:
        entry = store.insert(ApplicationMetrics.for_application(request.application))
        logger.info(
            "application_added",
            application=entry.name,
            full_name=entry.full_name,
            position=store.applications.index(entry),
        )
    replaced = entry.upsert_month(record)
    return MergedMonth(application=entry.name, month=record.month, replaced=replaced)


def reconcile(
    registry: Sequence[Application],
    catalog: Sequence[QueryDefinition],
    store: MetricsStore,
    client: AnalyticsClient,
    *,
    now: date | datetime,
    policy: RefreshPolicy = RefreshPolicy.ALWAYS_REFRESH_CURRENT,
    epoch_floor: date = EPOCH_FLOOR,
    max_workers: int = 16,
    base_url: str = DEFAULT_BASE_URL,
) -> ReconcileOutcome:
    """
    Fill the store's missing months.

    Every request is submitted before any is awaited, so all queries of the
    run share one bounded pool. Results are then merged one at a time on the
    calling thread in plan order; a failed request is recorded and skipped
    without affecting the others.
    """
    plan = detect_gaps(registry, store, now, policy=policy, epoch_floor=epoch_floor)
    outcome = ReconcileOutcome(store=store, plan=plan, changed=plan.dirty)
    if not plan.requests:
        return outcome

    workers = pool_size(registry, catalog, max_workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kpi-fetch") as executor:
        fetcher = MonthFetcher(registry, catalog, client, executor, base_url=base_url)
        pending = [fetcher.submit(request) for request in plan.requests]

        for item in pending:
            request = item.request
            month = format_us_date(request.month)
            match item.result():
                case Ok(record):
                    merged = merge_record(store, request, record)
                    outcome.merged.append(merged)
                    logger.info(
                        "month_merged",
                        application=request.application.name,
                        month=month,
                        reason=request.reason,
                        replaced=merged.replaced,
                    )
                case Err(error):
                    outcome.failures.append(
                        RequestFailure(
                            application=request.application.name,
                            month=request.month,
                            error=error,
                        )
                    )
                    logger.error(
                        "month_fetch_failed",
                        application=request.application.name,
                        month=month,
                        reason=request.reason,
                        **error_details(error),
                    )

    logger.info("reconcile_completed", workers=workers, **outcome.summary())
    return outcome


__all__ = [
    "RequestFailure",
    "MergedMonth",
    "ReconcileOutcome",
    "pool_size",
    "merge_record",
    "reconcile",
]
