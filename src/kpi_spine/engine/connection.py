"""Connection resolution: application name -> analytics connection."""

from __future__ import annotations

from collections.abc import Sequence

from kpi_spine.analytics import AnalyticsConnection
from kpi_spine.errors import MissingCredentialsError
from kpi_spine.models import Application
from kpi_spine.result import Err, Ok, Result

DEFAULT_BASE_URL = "https://api.applicationinsights.io/v1/apps"


def resolve_connection(
    registry: Sequence[Application],
    name: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
) -> Result[AnalyticsConnection]:
    """
    Build the analytics connection for an application.

    Pure lookup with no I/O. Returns ``Err(MissingCredentialsError)`` when the
    application is not in the registry or lacks an API key or application id.
    """
    app = next((candidate for candidate in registry if candidate.name == name), None)
    if app is None:
        return Err(MissingCredentialsError(name, f"Application not in registry: {name}"))
    if not app.api_key or not app.application_id:
        return Err(MissingCredentialsError(name))

    return Ok(
        AnalyticsConnection(
            application=app.name,
            url=f"{base_url.rstrip('/')}/{app.application_id}/query",
            role_name=app.role_name,
            headers={
                "Content-Type": "application/json",
                "X-API-Key": app.api_key,
            },
        )
    )


__all__ = ["DEFAULT_BASE_URL", "resolve_connection"]
