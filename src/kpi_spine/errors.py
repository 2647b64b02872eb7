"""
Structured error types for KPI collection.

Every failure raised by kpi-spine carries a category, a retry hint and a
context block so it can be logged as structured data and so the collector can
tell per-request failures (logged, siblings continue) from run-level failures
(the run stops).

Hierarchy::

    KpiSpineError
    ├── ConfigError            (CONFIG)
    │   └── MissingCredentialsError
    ├── TransientError         (NETWORK, retryable)
    │   └── AnalyticsError
    │       ├── AnalyticsTimeoutError
    │       ├── AnalyticsNetworkError
    │       ├── AnalyticsResponseError
    │       └── AnalyticsPayloadError
    ├── DataError              (DATA)
    │   ├── DocumentError
    │   └── MetricValueError
    └── StorageError           (STORAGE)
        └── PersistenceError

Request scoped: ``MissingCredentialsError``, ``AnalyticsError``,
``MetricValueError``. Run scoped: ``DocumentError``, ``PersistenceError``.

Usage:
    from kpi_spine.errors import AnalyticsTimeoutError

    try:
        response = client.post(url, json=payload)
    except httpx.TimeoutException as e:
        raise AnalyticsTimeoutError("Analytics query timed out", cause=e)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"
    STORAGE = "STORAGE"
    DATA = "DATA"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured context attached to an error for logging."""

    application: str | None = None
    month: str | None = None
    query: str | None = None
    document: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["application", "month", "query", "document", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class KpiSpineError(Exception):
    """
    Base exception for all kpi-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can be
    overridden per instance. Pass ``cause=`` when wrapping another exception
    so the original is chained.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> KpiSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MetricValueError("Not a number").with_context(
                application="svc1",
                query="errors",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(KpiSpineError):
    """Configuration error. Never retryable - configuration must be fixed."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingCredentialsError(ConfigError):
    """No usable analytics connection for an application."""

    def __init__(self, application: str, message: str | None = None):
        super().__init__(
            message or f"Missing analytics credentials for application: {application}",
            context=ErrorContext(application=application),
        )
        self.application = application


# =============================================================================
# TRANSIENT ERRORS
# =============================================================================


class TransientError(KpiSpineError):
    """Temporary error that may succeed on a later run."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class AnalyticsError(TransientError):
    """An analytics query did not produce a usable result."""


class AnalyticsTimeoutError(AnalyticsError):
    """Analytics query timed out."""


class AnalyticsNetworkError(AnalyticsError):
    """Analytics endpoint could not be reached."""


class AnalyticsResponseError(AnalyticsError):
    """Analytics endpoint answered with a non-success status."""

    def __init__(self, status_code: int, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Analytics query failed with HTTP {status_code}", **kwargs)
        self.status_code = status_code
        self.context.http_status = status_code
        self.retryable = status_code == 429 or status_code >= 500


class AnalyticsPayloadError(AnalyticsError):
    """Analytics response did not contain a scalar in the expected place."""

    default_retryable = False


# =============================================================================
# DATA ERRORS
# =============================================================================


class DataError(KpiSpineError):
    """Invalid data. Never retryable - data must be fixed."""

    default_category = ErrorCategory.DATA
    default_retryable = False


class DocumentError(DataError):
    """A stored document is missing, unparseable or invalid."""

    def __init__(self, document: str, message: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.document = document
        self.context.document = document


class MetricValueError(DataError):
    """An analytics result could not be coerced to a number."""


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(KpiSpineError):
    """Object storage failure."""

    default_category = ErrorCategory.STORAGE
    default_retryable = True


class PersistenceError(StorageError):
    """The metrics document could not be written back."""


def error_details(error: Exception) -> dict[str, Any]:
    """Structured description of any exception, for logs and reports."""
    if isinstance(error, KpiSpineError):
        return error.to_dict()
    return {"error_type": type(error).__name__, "message": str(error)}


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, KpiSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "KpiSpineError",
    "ConfigError",
    "MissingCredentialsError",
    "TransientError",
    "AnalyticsError",
    "AnalyticsTimeoutError",
    "AnalyticsNetworkError",
    "AnalyticsResponseError",
    "AnalyticsPayloadError",
    "DataError",
    "DocumentError",
    "MetricValueError",
    "StorageError",
    "PersistenceError",
    "error_details",
    "is_retryable",
]
