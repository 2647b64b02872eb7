"""Pytest configuration and fixtures."""

import json
import logging
import os
import threading
from datetime import date

import pytest
import structlog

# Keep tests independent of any developer .env / environment
os.environ.setdefault("KPI_STORAGE_TYPE", "local")
os.environ.setdefault("KPI_STORAGE_LOCAL_PATH", "/tmp/kpi_spine_test_storage")

from kpi_spine.analytics import AnalyticsConnection
from kpi_spine.config import Settings, reset_settings
from kpi_spine.models import Application, MetricsStore, QueryDefinition
from kpi_spine.storage import LocalStorage, reset_storage

TEMPLATE = "<FromDateGoesHere>..<ToDateGoesHere>..<RoleNameGoesHere>"


class FakeAnalyticsClient:
    """
    In-memory analytics client.

    Answers every query with ``value``, or ``by_application[name]`` when set.
    Applications listed in ``failing`` raise instead.
    """

    def __init__(self, value=1, failing=(), by_application=None):
        self.value = value
        self.failing = set(failing)
        self.by_application = by_application or {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def execute(self, connection: AnalyticsConnection, query: str):
        with self._lock:
            self.calls.append((connection.application, query))
        if connection.application in self.failing:
            raise RuntimeError(f"boom: {connection.application}")
        if connection.application in self.by_application:
            return self.by_application[connection.application]
        return self.value

    def queries_for(self, application: str) -> list[str]:
        return [query for app, query in self.calls if app == application]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached settings and storage around every test."""
    reset_settings()
    reset_storage()
    yield
    reset_settings()
    reset_storage()


@pytest.fixture
def restore_logging():
    """Undo configure_logging, which replaces the root handlers."""
    handlers = logging.root.handlers[:]
    level = logging.root.level
    yield
    logging.root.handlers[:] = handlers
    logging.root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def registry():
    """Two monitored applications, registry order Zeta then Alpha."""
    return [
        Application(
            name="zeta",
            full_name="Zeta Service",
            api_key="kz",
            application_id="idz",
            role_name="zeta-api",
        ),
        Application(
            name="alpha",
            full_name="Alpha Service",
            api_key="ka",
            application_id="ida",
            role_name="alpha-api",
        ),
    ]


@pytest.fixture
def catalog():
    return [
        QueryDefinition(name="errors", query=f"errors {TEMPLATE}"),
        QueryDefinition(name="requests", query=f"requests {TEMPLATE}"),
        QueryDefinition(name="users", query=f"users {TEMPLATE}"),
    ]


@pytest.fixture
def empty_store():
    return MetricsStore()


@pytest.fixture
def fake_client():
    return FakeAnalyticsClient(value=7)


@pytest.fixture
def storage(tmp_path):
    """Local storage rooted in a temp directory."""
    return LocalStorage(tmp_path / "storage")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage_type="local",
        storage_local_path=str(tmp_path / "storage"),
        max_workers=4,
    )


@pytest.fixture
def scenario_documents(storage):
    """The single-application scenario: svc1 in the registry, empty store."""
    storage.write_text(
        "applications.json",
        json.dumps(
            [
                {
                    "name": "svc1",
                    "fullName": "Svc One",
                    "applicationId": "id1",
                    "apiKey": "k1",
                    "roleName": "svc1-role",
                }
            ]
        ),
    )
    storage.write_text("queries.json", json.dumps([{"name": "errors", "query": TEMPLATE}]))
    storage.write_text("metrics.json", json.dumps({"applications": []}))
    return storage


@pytest.fixture
def may_15_2020():
    return date(2020, 5, 15)
