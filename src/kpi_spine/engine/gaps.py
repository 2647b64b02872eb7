"""Gap detection: which (application, month) pairs need collecting.

The month currently in progress is never collected. The anchor is the first
day of the current month, whose record holds the month just completed.

A newly seen application gets a two-month bootstrap ending at the most recent
month already collected for any application, so it lines up with the rest of
the store. The anchor month is then scheduled for every application according
to the refresh policy.

Detection never touches the store; the plan is applied by the merge step.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

import structlog

from kpi_spine.config import RefreshPolicy
from kpi_spine.models import Application, MetricsStore
from kpi_spine.months import add_months, format_us_date, month_start

logger = structlog.get_logger()

EPOCH_FLOOR = date(2020, 1, 1)


@dataclass(frozen=True)
class GapRequest:
    """One month to collect for one application."""

    application: Application
    target: date
    is_new_application: bool = False
    reason: str = "anchor"

    @property
    def month(self) -> date:
        """Marker of the record this request produces."""
        return month_start(self.target)


@dataclass
class GapPlan:
    """Ordered requests for a run plus the dates they were derived from."""

    anchor: date
    most_recent: date
    requests: list[GapRequest] = field(default_factory=list)
    new_applications: list[Application] = field(default_factory=list)

    @property
    def dirty(self) -> bool:
        return bool(self.requests)

    def describe(self) -> list[dict[str, str]]:
        return [
            {
                "application": request.application.name,
                "month": format_us_date(request.month),
                "reason": request.reason,
            }
            for request in self.requests
        ]


def detect_gaps(
    registry: Sequence[Application],
    store: MetricsStore,
    now: date | datetime,
    *,
    policy: RefreshPolicy = RefreshPolicy.ALWAYS_REFRESH_CURRENT,
    epoch_floor: date = EPOCH_FLOOR,
) -> GapPlan:
    """Compute the collection plan for this run."""
    anchor = month_start(now)
    most_recent = store.most_recent_month() or month_start(epoch_floor)
    plan = GapPlan(anchor=anchor, most_recent=most_recent)

    for app in registry:
        entry = store.find(app.name)
        scheduled: set[date] = set()

        def schedule(target: date, reason: str) -> None:
            if month_start(target) in scheduled:
                return
            scheduled.add(month_start(target))
            plan.requests.append(
                GapRequest(
                    application=app,
                    target=target,
                    is_new_application=entry is None,
                    reason=reason,
                )
            )

        if entry is None:
            plan.new_applications.append(app)
            schedule(add_months(most_recent, -1), "bootstrap")
            schedule(most_recent, "bootstrap")

        if policy is RefreshPolicy.ALWAYS_REFRESH_CURRENT:
            schedule(anchor, "anchor")
        elif entry is None or entry.find_month(anchor) is None:
            schedule(anchor, "stale")

    logger.info(
        "gaps_detected",
        anchor=format_us_date(anchor),
        most_recent=format_us_date(most_recent),
        requests=len(plan.requests),
        new_applications=len(plan.new_applications),
        policy=policy.value,
    )
    return plan


__all__ = ["EPOCH_FLOOR", "GapRequest", "GapPlan", "detect_gaps"]
