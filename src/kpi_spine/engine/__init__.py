"""Metrics reconciliation engine."""

from kpi_spine.engine.connection import resolve_connection
from kpi_spine.engine.fetch import MonthFetcher, PendingMonth, coerce_metric
from kpi_spine.engine.gaps import GapPlan, GapRequest, detect_gaps
from kpi_spine.engine.reconcile import ReconcileOutcome, RequestFailure, reconcile

__all__ = [
    "resolve_connection",
    "MonthFetcher",
    "PendingMonth",
    "coerce_metric",
    "GapPlan",
    "GapRequest",
    "detect_gaps",
    "ReconcileOutcome",
    "RequestFailure",
    "reconcile",
]
