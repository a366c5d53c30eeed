# src/refrate/app.py
"""
Application Entry Point - Composition Root and Command Line

This module wires every service from settings and exposes them as a Typer
CLI. Each command is a single synchronous run meant for cron or manual use.

Commands:
- init-db       create missing tables
- resolve       resolve the rate for a date or a date range
- fetch-rate    store rates in the historical table
- warm-rates    store rates for dispatch dates that have none yet
- stats         recompute daily statistics snapshots
- clear-cache   drop cached rates
- status        diagnostic summary of the resolver

Files that USE this module:
- pyproject.toml console script (refrate = refrate.app:main)

Files that this module USES:
- refrate.shared.logging_conf (setup_logging for logging configuration)
- refrate.config (settings for configuration management)
- refrate.adapters.* (sources and persistence)
- refrate.application.* (resolver, statistics, daily rates)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations for forward references

import json  # Render the status command output
import logging  # Standard library for logging messages and errors
from dataclasses import dataclass  # Container of wired services
from datetime import date  # Calendar dates for command options
from typing import Optional  # Type hints for optional values

import typer  # Command line interface

from refrate.adapters.persistence.db import Database  # SQLAlchemy engine + sessions
from refrate.adapters.persistence.file_store import JsonCacheStore  # Persistent rate cache
from refrate.adapters.persistence.repositories import (
    HistoricalRateRepository,  # trm_daily table
    OrderRepository,  # Orders with lines and dispatch events
    StatisticsRepository,  # order_statistics table
)
from refrate.adapters.sources.openexchangerates import OpenExchangeRatesProvider  # Secondary source
from refrate.adapters.sources.superfinanciera import SuperfinancieraProvider  # Primary source
from refrate.application.daily_rates import DailyRateFetcher  # Historical table filler
from refrate.application.dispatch_dates import DispatchDateResolver  # Planned dispatch dates
from refrate.application.effective_rate import EffectiveRateResolver  # Per-event rates
from refrate.application.rate_cache import RateCache  # Two-level cache
from refrate.application.rate_resolver import RateResolver  # Tiered resolver
from refrate.application.statistics import StatisticsAggregator, StatisticsService  # Daily snapshots
from refrate.config import Settings, settings  # Application settings
from refrate.domain.errors import AggregationError  # Statistics failure
from refrate.shared.clock import Clock, local_clock  # Local time source
from refrate.shared.logging_conf import setup_logging  # Configure logging with file rotation
from refrate.shared.validators import parse_iso_date  # CLI date parsing

logger = logging.getLogger(__name__)

app = typer.Typer(help="Reference-rate resolver and daily dispatch statistics.")


@dataclass
class Services:
    """Everything a command may need, built once per invocation."""
    settings: Settings
    clock: Clock
    db: Database
    cache: RateCache
    resolver: RateResolver
    historical: HistoricalRateRepository
    statistics: StatisticsService
    fetcher: DailyRateFetcher


def build_services(cfg: Optional[Settings] = None, clock: Optional[Clock] = None) -> Services:
    """
    Wire the application from settings.

    Args:
        cfg: Settings to use (defaults to the global settings)
        clock: Time source (defaults to the configured timezone)

    Returns:
        Services with shared cache, resolver, repositories and statistics service
    """
    cfg = settings if cfg is None else cfg
    clock = clock if clock is not None else local_clock(cfg.timezone)

    db = Database(cfg.database_url, echo=cfg.database_echo)
    cache = RateCache(
        store=JsonCacheStore(cfg.rate_cache_file),
        last_known_good_path=cfg.last_known_good_file,
        clock=clock,
        past_ttl_days=cfg.past_date_ttl_days,
        future_ttl_minutes=cfg.future_date_ttl_minutes,
    )

    primary = SuperfinancieraProvider(
        url=cfg.primary_url,
        timeout=cfg.primary_timeout_seconds,
        verify_tls=cfg.primary_verify_tls,
    )
    secondary = None
    if cfg.secondary_configured:
        secondary = OpenExchangeRatesProvider(
            app_id=cfg.secondary_app_id,
            base_url=cfg.secondary_url,
            timeout=cfg.secondary_timeout_seconds,
            base=cfg.secondary_base,
            symbol=cfg.secondary_symbol,
            cache_dir=cfg.data_dir,
            clock=clock,
        )
    else:
        logger.info("SECONDARY_RATE_APP_ID not set; secondary rate source disabled")

    resolver = RateResolver(cache=cache, primary=primary, secondary=secondary, clock=clock)
    historical = HistoricalRateRepository(db)
    effective = EffectiveRateResolver(
        historical=historical,
        resolver=resolver if cfg.stats_live_rate_fallback else None,
    )
    dates = DispatchDateResolver(
        planning_business_days=cfg.planning_business_days,
        rate_window_buffer_days=cfg.rate_window_buffer_days,
    )
    aggregator = StatisticsAggregator(
        orders=OrderRepository(db),
        dates=dates,
        rates=effective,
        clock=clock,
    )

    return Services(
        settings=cfg,
        clock=clock,
        db=db,
        cache=cache,
        resolver=resolver,
        historical=historical,
        statistics=StatisticsService(aggregator, StatisticsRepository(db), clock),
        fetcher=DailyRateFetcher(resolver, historical, clock),
    )


def _services(ctx: typer.Context) -> Services:
    if ctx.obj is None:
        ctx.obj = build_services()
    return ctx.obj


def _date_option(value: Optional[str], name: str) -> Optional[date]:
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=name) from exc


@app.callback()
def _configure(ctx: typer.Context) -> None:
    """Set up logging before any command runs."""
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """Create missing tables in the configured database."""
    services = _services(ctx)
    services.db.create_all()
    typer.echo("Database ready")


@app.command("resolve")
def resolve_command(
    ctx: typer.Context,
    on: Optional[str] = typer.Option(None, "--date", help="Date to resolve (YYYY-MM-DD, default today)."),
    from_date: Optional[str] = typer.Option(None, "--from", help="Range start inclusive (YYYY-MM-DD)."),
    to_date: Optional[str] = typer.Option(None, "--to", help="Range end inclusive (YYYY-MM-DD)."),
) -> None:
    """Resolve the reference rate for a date or a date range."""
    services = _services(ctx)
    start = _date_option(from_date, "--from")
    end = _date_option(to_date, "--to")

    if start or end:
        if not (start and end):
            raise typer.BadParameter("--from and --to must be given together")
        if end < start:
            raise typer.BadParameter("--to is before --from")
        quotes = services.resolver.resolve_range(start, end)
    else:
        day = _date_option(on, "--date") or services.clock().date()
        quotes = {day: services.resolver.resolve(day)}

    for day, quote in quotes.items():
        typer.echo(f"{day.isoformat()}  {quote.value}  ({quote.source.value})")


@app.command("fetch-rate")
def fetch_rate_command(
    ctx: typer.Context,
    on: Optional[str] = typer.Option(None, "--date", help="Date to fetch (YYYY-MM-DD, default today)."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing row."),
    days: Optional[int] = typer.Option(None, "--range", min=1, help="Fetch the last N days instead."),
) -> None:
    """Store the reference rate in the historical table."""
    services = _services(ctx)
    if days:
        results = services.fetcher.fetch_recent(days, force=force)
    else:
        results = [services.fetcher.fetch(_date_option(on, "--date"), force=force)]

    failures = 0
    for result in results:
        typer.echo(result.message)
        if not result.stored and not result.existed:
            failures += 1

    if failures:
        logger.warning("%d of %d date(s) had no storable rate", failures, len(results))
        raise typer.Exit(code=1)


@app.command("warm-rates")
def warm_rates_command(
    ctx: typer.Context,
    from_date: str = typer.Option(..., "--from", help="Range start inclusive (YYYY-MM-DD)."),
    to_date: str = typer.Option(..., "--to", help="Range end inclusive (YYYY-MM-DD)."),
) -> None:
    """Store rates for confirmed dispatch dates that have no historical row."""
    services = _services(ctx)
    start = _date_option(from_date, "--from")
    end = _date_option(to_date, "--to")
    results = services.fetcher.warm_missing(start, end)
    stored = sum(1 for r in results if r.stored)
    typer.echo(f"Stored {stored} of {len(results)} missing rate(s)")


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    on: Optional[str] = typer.Option(None, "--date", help="Day to recompute (YYYY-MM-DD, default today)."),
    from_date: Optional[str] = typer.Option(None, "--from", help="Range start inclusive (YYYY-MM-DD)."),
    to_date: Optional[str] = typer.Option(None, "--to", help="Range end inclusive (YYYY-MM-DD)."),
    days: Optional[int] = typer.Option(None, "--days", min=1, help="Recompute the last N days."),
    month: bool = typer.Option(False, "--month", help="Recompute month-to-date."),
) -> None:
    """Recompute and store daily statistics snapshots."""
    services = _services(ctx)
    start = _date_option(from_date, "--from")
    end = _date_option(to_date, "--to")

    if start or end:
        if not (start and end):
            raise typer.BadParameter("--from and --to must be given together")
        if end < start:
            raise typer.BadParameter("--to is before --from")
        outcomes = services.statistics.recompute_range(start, end)
    elif days or month:
        outcomes = services.statistics.recompute_recent(days)
    else:
        day = _date_option(on, "--date") or services.clock().date()
        try:
            snapshot = services.statistics.recompute(day)
        except AggregationError as e:
            logger.error("%s", e)
            typer.echo(f"Failed: {e}", err=True)
            raise typer.Exit(code=1)
        typer.echo(
            f"{day.isoformat()}: {snapshot.total_orders_created} created, "
            f"{snapshot.dispatched_orders_count} dispatched, average rate {snapshot.average_trm}"
        )
        return

    failed = [o for o in outcomes.values() if not o.ok]
    for outcome in outcomes.values():
        status = "ok" if outcome.ok else f"failed: {outcome.error}"
        typer.echo(f"{outcome.day.isoformat()}: {status}")
    typer.echo(f"{len(outcomes) - len(failed)} of {len(outcomes)} day(s) stored")
    if failed:
        raise typer.Exit(code=1)


@app.command("clear-cache")
def clear_cache_command(
    ctx: typer.Context,
    on: Optional[str] = typer.Option(None, "--date", help="Only drop this date (YYYY-MM-DD)."),
    include_emergency: bool = typer.Option(False, "--all", help="Also drop the last-known-good rate."),
) -> None:
    """Drop cached rates."""
    services = _services(ctx)
    day = _date_option(on, "--date")
    if day is not None:
        removed = services.resolver.clear_date(day)
        typer.echo(f"{day.isoformat()}: {'removed' if removed else 'not cached'}")
        return

    removed = services.resolver.clear_cache(include_emergency=include_emergency)
    typer.echo(", ".join(f"{name}={count}" for name, count in removed.items()))


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show today's rate, the last-known-good record and cache sizes."""
    services = _services(ctx)
    summary = services.resolver.status()
    try:
        summary["database"] = services.db.health_check()
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        summary["database"] = False
    typer.echo(json.dumps(summary, indent=2, ensure_ascii=False))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
