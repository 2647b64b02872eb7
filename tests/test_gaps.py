"""Tests for gap detection."""

from datetime import date

from kpi_spine.config import RefreshPolicy
from kpi_spine.engine.gaps import detect_gaps
from kpi_spine.models import ApplicationMetrics, MetricsStore, MonthRecord


def _store(*entries):
    store = MetricsStore()
    for name, full_name, months in entries:
        store.insert(
            ApplicationMetrics(
                name=name,
                full_name=full_name,
                months=[MonthRecord(month=month, values={"errors": 1}) for month in months],
            )
        )
    return store


def _pairs(plan):
    return [(request.application.name, request.month) for request in plan.requests]


class TestNewApplications:
    """Tests for bootstrap scheduling."""

    def test_empty_store_uses_epoch_floor(self, registry, empty_store, may_15_2020):
        plan = detect_gaps(registry[:1], empty_store, may_15_2020)

        assert plan.most_recent == date(2020, 1, 1)
        assert plan.anchor == date(2020, 5, 1)
        assert _pairs(plan) == [
            ("zeta", date(2019, 12, 1)),
            ("zeta", date(2020, 1, 1)),
            ("zeta", date(2020, 5, 1)),
        ]
        assert [request.reason for request in plan.requests] == ["bootstrap", "bootstrap", "anchor"]
        assert all(request.is_new_application for request in plan.requests)

    def test_bootstrap_aligns_to_most_recent_collected_month(self, registry, may_15_2020):
        store = _store(("zeta", "Zeta Service", [date(2020, 3, 1), date(2020, 4, 1)]))

        plan = detect_gaps(registry, store, may_15_2020)

        assert _pairs(plan) == [
            ("zeta", date(2020, 5, 1)),
            ("alpha", date(2020, 3, 1)),
            ("alpha", date(2020, 4, 1)),
            ("alpha", date(2020, 5, 1)),
        ]
        assert [app.name for app in plan.new_applications] == ["alpha"]

    def test_no_duplicate_when_bootstrap_reaches_anchor(self, registry, may_15_2020):
        store = _store(("zeta", "Zeta Service", [date(2020, 5, 1)]))

        plan = detect_gaps(registry, store, may_15_2020)

        alpha = [month for name, month in _pairs(plan) if name == "alpha"]
        assert alpha == [date(2020, 4, 1), date(2020, 5, 1)]

    def test_custom_epoch_floor(self, registry, empty_store, may_15_2020):
        plan = detect_gaps(registry[:1], empty_store, may_15_2020, epoch_floor=date(2019, 6, 20))
        assert plan.requests[0].month == date(2019, 5, 1)


class TestRefreshPolicy:
    """Tests for anchor month scheduling."""

    def test_always_refresh_reschedules_collected_anchor(self, registry, may_15_2020):
        store = _store(
            ("zeta", "Zeta Service", [date(2020, 5, 1)]),
            ("alpha", "Alpha Service", [date(2020, 5, 1)]),
        )

        plan = detect_gaps(registry, store, may_15_2020, policy=RefreshPolicy.ALWAYS_REFRESH_CURRENT)

        assert _pairs(plan) == [("zeta", date(2020, 5, 1)), ("alpha", date(2020, 5, 1))]
        assert plan.dirty is True

    def test_refresh_if_stale_skips_collected_anchor(self, registry, may_15_2020):
        store = _store(
            ("zeta", "Zeta Service", [date(2020, 5, 1)]),
            ("alpha", "Alpha Service", [date(2020, 4, 1)]),
        )

        plan = detect_gaps(registry, store, may_15_2020, policy=RefreshPolicy.REFRESH_IF_STALE)

        assert _pairs(plan) == [("alpha", date(2020, 5, 1))]
        assert plan.requests[0].reason == "stale"

    def test_refresh_if_stale_nothing_to_do(self, registry, may_15_2020):
        store = _store(
            ("zeta", "Zeta Service", [date(2020, 5, 1)]),
            ("alpha", "Alpha Service", [date(2020, 5, 1)]),
        )

        plan = detect_gaps(registry, store, may_15_2020, policy=RefreshPolicy.REFRESH_IF_STALE)

        assert plan.requests == []
        assert plan.dirty is False


class TestDetectionIsPure:
    """Gap detection never mutates the store."""

    def test_idempotent(self, registry, empty_store, may_15_2020):
        first = detect_gaps(registry, empty_store, may_15_2020)
        second = detect_gaps(registry, empty_store, may_15_2020)

        assert first.requests == second.requests
        assert empty_store.applications == []

    def test_day_of_month_does_not_matter(self, registry, empty_store):
        early = detect_gaps(registry, empty_store, date(2020, 5, 1))
        late = detect_gaps(registry, empty_store, date(2020, 5, 31))

        assert _pairs(early) == _pairs(late)

    def test_describe(self, registry, empty_store, may_15_2020):
        plan = detect_gaps(registry[:1], empty_store, may_15_2020)
        assert plan.describe()[0] == {"application": "zeta", "month": "12/1/2019", "reason": "bootstrap"}
