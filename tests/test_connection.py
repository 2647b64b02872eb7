"""Tests for connection resolution."""

from kpi_spine.engine.connection import resolve_connection
from kpi_spine.errors import MissingCredentialsError
from kpi_spine.models import Application


class TestResolveConnection:
    """Tests for resolve_connection."""

    def test_builds_connection(self, registry):
        result = resolve_connection(registry, "alpha")

        assert result.is_ok()
        connection = result.unwrap()
        assert connection.application == "alpha"
        assert connection.url == "https://api.applicationinsights.io/v1/apps/ida/query"
        assert connection.role_name == "alpha-api"
        assert connection.headers == {"Content-Type": "application/json", "X-API-Key": "ka"}

    def test_custom_base_url(self, registry):
        result = resolve_connection(registry, "zeta", base_url="http://analytics.local/apps/")
        assert result.unwrap().url == "http://analytics.local/apps/idz/query"

    def test_unknown_application(self, registry):
        result = resolve_connection(registry, "missing")

        assert result.is_err()
        assert isinstance(result.error, MissingCredentialsError)
        assert result.error.application == "missing"

    def test_application_without_api_key(self):
        registry = [Application(name="svc1", application_id="id1")]
        result = resolve_connection(registry, "svc1")

        assert result.is_err()
        assert isinstance(result.error, MissingCredentialsError)

    def test_repeatable(self, registry):
        """Pure lookup: same input, same connection."""
        assert resolve_connection(registry, "alpha") == resolve_connection(registry, "alpha")
