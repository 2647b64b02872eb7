"""CLI for KPI Spine."""

import json
from datetime import datetime
from typing import Optional

import typer

from kpi_spine.analytics import HttpAnalyticsClient
from kpi_spine.config import RefreshPolicy, get_settings
from kpi_spine.errors import KpiSpineError
from kpi_spine.logging import configure_logging
from kpi_spine.storage import get_storage

app = typer.Typer(
    name="kpi-spine",
    help="KPI Spine - monthly KPI collection for monitored applications",
    no_args_is_help=True,
)

UP_TO_DATE_MESSAGE = "Metrics are already up-to-date.  No updates needed"


def build_client() -> HttpAnalyticsClient:
    """Create the analytics client from settings."""
    settings = get_settings()
    return HttpAnalyticsClient(
        timeout=settings.analytics_timeout,
        verify=settings.analytics_verify_tls,
    )


@app.callback()
def setup(
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
    log_format: Optional[str] = typer.Option(None, help="console or json"),
):
    """Initialize logging."""
    configure_logging(level=log_level, fmt=log_format)


# =============================================================================
# Collection
# =============================================================================


@app.command("collect")
def collect(
    as_of: Optional[datetime] = typer.Option(
        None, "--as-of", formats=["%Y-%m-%d"], help="Run as if today were this date (default: today)"
    ),
    refresh_policy: Optional[RefreshPolicy] = typer.Option(
        None, help="Override the configured refresh policy"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Collect but do not save"),
    fail_on_error: bool = typer.Option(
        False, "--fail-on-error", help="Exit with code 2 if any month failed"
    ),
):
    """Collect missing months and save the metrics document."""
    from kpi_spine.collector import collect_metrics

    settings = get_settings()
    typer.echo("KPI data collection starting")
    try:
        with build_client() as client:
            result = collect_metrics(
                get_storage(),
                client,
                settings,
                now=as_of,
                policy=refresh_policy,
                dry_run=dry_run,
            )
    except KpiSpineError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)

    outcome = result.outcome
    if result.up_to_date:
        typer.echo(UP_TO_DATE_MESSAGE)
        return

    summary = outcome.summary()
    typer.echo(
        f"Collected {summary['merged']} of {summary['scheduled']} months "
        f"({summary['replaced']} refreshed, {summary['failed']} failed)"
    )
    if summary["new_applications"]:
        typer.echo(f"  New applications: {', '.join(summary['new_applications'])}")
    for failure in outcome.failures:
        typer.echo(
            f"  ✗ {failure.application} {failure.to_dict()['month']}: {failure.error}",
            err=True,
        )

    if result.saved:
        typer.echo(f"Saved {settings.output_path} in {result.total_duration_ms:.0f}ms")
    elif result.dry_run:
        typer.echo("Dry run: metrics not saved")

    if fail_on_error and outcome.failures:
        raise typer.Exit(2)


@app.command("gaps")
def gaps(
    as_of: Optional[datetime] = typer.Option(
        None, "--as-of", formats=["%Y-%m-%d"], help="Run as if today were this date (default: today)"
    ),
    refresh_policy: Optional[RefreshPolicy] = typer.Option(
        None, help="Override the configured refresh policy"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON"),
):
    """Show which months a collection would fetch, without fetching."""
    from kpi_spine.documents import load_applications, load_metrics
    from kpi_spine.engine.gaps import detect_gaps

    settings = get_settings()
    storage = get_storage()
    try:
        applications = load_applications(storage, settings.applications_path)
        store = load_metrics(storage, settings.metrics_path)
    except KpiSpineError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)

    plan = detect_gaps(
        applications,
        store,
        as_of or datetime.now(),
        policy=refresh_policy or settings.refresh_policy,
        epoch_floor=settings.epoch_floor,
    )

    if as_json:
        typer.echo(json.dumps(plan.describe(), indent=2))
        return

    if not plan.requests:
        typer.echo(UP_TO_DATE_MESSAGE)
        return

    typer.echo(f"\nScheduled months ({len(plan.requests)}):")
    typer.echo("-" * 60)
    for item in plan.describe():
        typer.echo(f"  {item['application']:<30} {item['month']:<12} {item['reason']}")


@app.command("show")
def show(
    path: Optional[str] = typer.Option(
        None, "--path", help="Metrics document to read (default: the file collect writes)"
    ),
):
    """List stored applications and their collected months."""
    from kpi_spine.documents import load_metrics

    settings = get_settings()
    try:
        store = load_metrics(get_storage(), path or settings.output_path)
    except KpiSpineError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)

    if not store.applications:
        typer.echo("No applications collected yet")
        return

    typer.echo("\nApplications:")
    typer.echo("-" * 80)
    for entry in store.applications:
        months = ", ".join(record.marker for record in entry.months) or "-"
        typer.echo(f"  {entry.display_name:<30} {len(entry.months):>3} months | {months}")


def main():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
