"""Collector - loads the KPI documents, reconciles, and saves when needed."""

from dataclasses import dataclass
from datetime import date, datetime

import structlog

from kpi_spine.analytics import AnalyticsClient
from kpi_spine.config import RefreshPolicy, Settings
from kpi_spine.documents import load_applications, load_metrics, load_queries, save_metrics
from kpi_spine.engine.reconcile import ReconcileOutcome, reconcile
from kpi_spine.logging import log_context
from kpi_spine.storage import FileInfo, Storage

logger = structlog.get_logger()


@dataclass
class CollectionResult:
    """Result from one collection run."""

    outcome: ReconcileOutcome
    saved: bool
    saved_file: FileInfo | None = None
    dry_run: bool = False
    total_duration_ms: float = 0

    @property
    def up_to_date(self) -> bool:
        return not self.outcome.changed


def collect_metrics(
    storage: Storage,
    client: AnalyticsClient,
    settings: Settings,
    *,
    now: date | datetime | None = None,
    policy: RefreshPolicy | None = None,
    dry_run: bool = False,
) -> CollectionResult:
    """
    Run one collection.

    Document load and save failures propagate (``DocumentError``,
    ``PersistenceError``); per-month failures are reported in the outcome.
    """
    start = datetime.now()
    now = now or start
    policy = policy or settings.refresh_policy

    with log_context(as_of=now.isoformat(), policy=policy.value):
        logger.info("collection_started", dry_run=dry_run)

        applications = load_applications(storage, settings.applications_path)
        queries = load_queries(storage, settings.queries_path)
        store = load_metrics(storage, settings.metrics_path)

        outcome = reconcile(
            applications,
            queries,
            store,
            client,
            now=now,
            policy=policy,
            epoch_floor=settings.epoch_floor,
            max_workers=settings.max_workers,
            base_url=settings.analytics_base_url,
        )

        saved_file = None
        if outcome.changed and not dry_run:
            saved_file = save_metrics(storage, outcome.store, settings.output_path)
        elif not outcome.changed:
            logger.info("metrics_up_to_date")

        duration = (datetime.now() - start).total_seconds() * 1000
        logger.info(
            "collection_completed",
            saved=saved_file is not None,
            failed=len(outcome.failures),
            duration_ms=duration,
        )

    return CollectionResult(
        outcome=outcome,
        saved=saved_file is not None,
        saved_file=saved_file,
        dry_run=dry_run,
        total_duration_ms=duration,
    )
