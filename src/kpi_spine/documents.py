"""Load and save the KPI documents kept in object storage."""

from __future__ import annotations

from typing import TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError

from kpi_spine.errors import DocumentError, PersistenceError
from kpi_spine.models import Application, MetricsStore, QueryDefinition
from kpi_spine.storage import FileInfo, Storage

logger = structlog.get_logger()

T = TypeVar("T")

_APPLICATIONS = TypeAdapter(list[Application])
_QUERIES = TypeAdapter(list[QueryDefinition])


def _load(storage: Storage, path: str, adapter: TypeAdapter[T]) -> T:
    try:
        raw = storage.read(path)
    except FileNotFoundError as e:
        raise DocumentError(path, f"Document not found: {path}", cause=e)
    except OSError as e:
        raise DocumentError(path, f"Failed to read document {path}: {e}", cause=e)

    try:
        document = adapter.validate_json(raw)
    except ValidationError as e:
        raise DocumentError(path, f"Invalid document {path}: {e}", cause=e)

    logger.info("document_loaded", path=path, size=len(raw))
    return document


def _require_unique(path: str, kind: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise DocumentError(path, f"Duplicate {kind} name in {path}: {name}")
        seen.add(name)


def load_applications(storage: Storage, path: str = "applications.json") -> list[Application]:
    """Load the application registry."""
    applications = _load(storage, path, _APPLICATIONS)
    _require_unique(path, "application", [app.name for app in applications])
    return applications


def load_queries(storage: Storage, path: str = "queries.json") -> list[QueryDefinition]:
    """Load the query catalog."""
    queries = _load(storage, path, _QUERIES)
    _require_unique(path, "query", [query.name for query in queries])
    return queries


def load_metrics(storage: Storage, path: str = "metrics.json") -> MetricsStore:
    """
    Load the metrics store.

    Repeated month markers within an application are collapsed to the last
    record stored for that marker.
    """
    store = _load(storage, path, TypeAdapter(MetricsStore))
    _require_unique(path, "application", [entry.name for entry in store.applications])
    for entry in store.applications:
        dropped = entry.collapse_duplicate_months()
        if dropped:
            logger.warning(
                "duplicate_months_collapsed",
                path=path,
                application=entry.name,
                dropped=dropped,
            )
    return store


def save_metrics(storage: Storage, store: MetricsStore, path: str = "metrics.json") -> FileInfo:
    """Replace the stored metrics document with ``store``."""
    payload = store.to_json()
    try:
        info = storage.write_text(path, payload, content_type="application/json")
    except Exception as e:
        raise PersistenceError(f"Failed to save metrics to {path}: {e}", cause=e).with_context(
            document=path
        )

    logger.info("metrics_saved", path=path, size=info.size_bytes, applications=len(store.applications))
    return info


__all__ = ["load_applications", "load_queries", "load_metrics", "save_metrics"]
