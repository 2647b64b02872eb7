"""
Ok / Err envelope for per-request outcomes.

Resolving a connection and fetching one month can fail for a single
application without affecting the rest of the run, so those steps return a
``Result`` and the reconciliation loop matches on it::

    match pending.result():
        case Ok(record):
            merge_record(store, request, record)
        case Err(error):
            failures.append(...)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from kpi_spine.errors import error_details

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Ok(f(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Re-raise the carried error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Err(self.error)

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": error_details(self.error)}


Result = Ok[T] | Err[T]


__all__ = ["Ok", "Err", "Result"]
