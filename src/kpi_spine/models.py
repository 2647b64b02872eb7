"""Pydantic models for the stored KPI documents.

Three JSON documents live in object storage:

``applications.json``::

    [{"name": "svc1", "fullName": "Svc One", "applicationId": "id1",
      "apiKey": "k1", "roleName": "svc1-api"}]

``queries.json``::

    [{"name": "errors",
      "query": "exceptions | where timestamp between (datetime(<FromDateGoesHere>) .. datetime(<ToDateGoesHere>)) | where cloud_RoleName == '<RoleNameGoesHere>' | count"}]

``metrics.json``::

    {"applications": [{"name": "svc1", "fullName": "Svc One",
                       "months": [{"date": "5/1/2020", "errors": 12}]}]}

Month records are stored flat: the ``date`` marker next to one numeric key per
query name.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator

from kpi_spine.months import format_us_date, parse_month_marker

FROM_DATE_PLACEHOLDER = "<FromDateGoesHere>"
TO_DATE_PLACEHOLDER = "<ToDateGoesHere>"
ROLE_NAME_PLACEHOLDER = "<RoleNameGoesHere>"
PLACEHOLDERS = (FROM_DATE_PLACEHOLDER, TO_DATE_PLACEHOLDER, ROLE_NAME_PLACEHOLDER)

# Key holding the marker inside a flattened month record
MONTH_MARKER_KEY = "date"

MetricValue = int | float | None


class Application(BaseModel):
    """A monitored application and its analytics credentials."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    full_name: str = Field(default="", alias="fullName")
    api_key: str = Field(default="", alias="apiKey")
    application_id: str = Field(default="", alias="applicationId")
    role_name: str = Field(default="", alias="roleName")

    @property
    def display_name(self) -> str:
        return self.full_name or self.name


class QueryDefinition(BaseModel):
    """A named analytics query template."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    query: str

    @field_validator("name")
    @classmethod
    def _name_not_reserved(cls, value: str) -> str:
        if value == MONTH_MARKER_KEY:
            raise ValueError(f"query name {MONTH_MARKER_KEY!r} is reserved for the month marker")
        return value

    @field_validator("query")
    @classmethod
    def _placeholders_once(cls, value: str) -> str:
        for placeholder in PLACEHOLDERS:
            count = value.count(placeholder)
            if count != 1:
                raise ValueError(f"template must contain {placeholder} exactly once (found {count})")
        return value

    def render(self, from_date: date, to_date: date, role_name: str) -> str:
        """Substitute the date window and role name into the template."""
        return (
            self.query.replace(FROM_DATE_PLACEHOLDER, format_us_date(from_date))
            .replace(TO_DATE_PLACEHOLDER, format_us_date(to_date))
            .replace(ROLE_NAME_PLACEHOLDER, role_name)
        )


class MonthRecord(BaseModel):
    """One month of collected metrics for one application."""

    model_config = ConfigDict(frozen=True)

    month: date
    values: dict[str, MetricValue] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _unflatten(cls, data: Any) -> Any:
        if isinstance(data, dict) and MONTH_MARKER_KEY in data:
            data = dict(data)
            marker = data.pop(MONTH_MARKER_KEY)
            return {"month": marker, "values": data}
        return data

    @field_validator("month", mode="before")
    @classmethod
    def _parse_marker(cls, value: Any) -> Any:
        if isinstance(value, (str, date)):
            return parse_month_marker(value)
        return value

    @model_serializer
    def _flatten(self) -> dict[str, Any]:
        return {MONTH_MARKER_KEY: format_us_date(self.month), **self.values}

    @property
    def marker(self) -> str:
        return format_us_date(self.month)


class ApplicationMetrics(BaseModel):
    """Collected months for one application."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    full_name: str = Field(default="", alias="fullName")
    months: list[MonthRecord] = Field(default_factory=list)

    @classmethod
    def for_application(cls, app: Application) -> ApplicationMetrics:
        return cls(name=app.name, full_name=app.display_name)

    @property
    def display_name(self) -> str:
        return self.full_name or self.name

    def find_month(self, month: date) -> int | None:
        """Index of the record with this marker, if any."""
        for index, record in enumerate(self.months):
            if record.month == month:
                return index
        return None

    def collapse_duplicate_months(self) -> int:
        """
        Keep one record per marker: the last one stored, at the position of
        the first. Returns how many records were dropped.
        """
        latest: dict[date, MonthRecord] = {}
        for record in self.months:
            latest[record.month] = record
        if len(latest) == len(self.months):
            return 0
        dropped = len(self.months) - len(latest)
        self.months = list(latest.values())
        return dropped

    def upsert_month(self, record: MonthRecord) -> bool:
        """
        Add a record, replacing one with the same marker in place.

        Replacement is how the current month gets refreshed under
        ``always-refresh-current``: a record already written for the anchor
        month is overwritten with freshly queried values, so its numbers can
        change between runs within the same month. Use ``refresh-if-stale``
        to leave written records untouched.

        Returns True when an existing record was replaced.
        """
        index = self.find_month(record.month)
        if index is None:
            self.months.append(record)
            return False
        self.months[index] = record
        return True


class MetricsStore(BaseModel):
    """The full persisted metrics dataset."""

    model_config = ConfigDict(extra="ignore")

    applications: list[ApplicationMetrics] = Field(default_factory=list)

    def find(self, name: str) -> ApplicationMetrics | None:
        for entry in self.applications:
            if entry.name == name:
                return entry
        return None

    def insert(self, entry: ApplicationMetrics) -> ApplicationMetrics:
        """Add an application entry, keeping the list sorted by display name."""
        self.applications.append(entry)
        self.applications.sort(key=lambda item: item.display_name.casefold())
        return entry

    def most_recent_month(self) -> date | None:
        """Latest month marker across every application, or None when empty."""
        markers = [record.month for entry in self.applications for record in entry.months]
        return max(markers) if markers else None

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


__all__ = [
    "FROM_DATE_PLACEHOLDER",
    "TO_DATE_PLACEHOLDER",
    "ROLE_NAME_PLACEHOLDER",
    "PLACEHOLDERS",
    "MONTH_MARKER_KEY",
    "Application",
    "QueryDefinition",
    "MonthRecord",
    "ApplicationMetrics",
    "MetricsStore",
]
