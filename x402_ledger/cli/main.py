"""
CLI interface for the x402 ledger.

Records events and prints the seller and buyer dashboards from the terminal.
"""

import sys
from contextlib import contextmanager
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from x402_ledger.config.loader import LedgerConfig, load_config
from x402_ledger.config.logging_config import setup_logging
from x402_ledger.core.aggregation import AggregationService
from x402_ledger.core.clock import as_utc, utc_now
from x402_ledger.core.errors import LedgerError
from x402_ledger.core.event_logger import EventLogger, SpendingLogger, UsageLogger
from x402_ledger.core.filters import QueryFilter
from x402_ledger.core.status import ServiceCategory, optional_enum, require_enum
from x402_ledger.demo.seed_demo_data import seed_spending_events, seed_usage_events
from x402_ledger.storage.models import Dimension, EventRecord, SpendingEvent, UsageEvent
from x402_ledger.storage.repository import EventStore

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


class Side(str, Enum):
    """Which ledger a command works on."""
    SELLER = "seller"
    BUYER = "buyer"


SIDE_OPTION = typer.Option(Side.SELLER, "--side", "-s", help="seller (usage) or buyer (spending)")
FROM_OPTION = typer.Option(None, "--from", help="Window start, defaults to reporting.default_days ago")
TO_OPTION = typer.Option(None, "--to", help="Window end, defaults to now")
CATEGORY_OPTION = typer.Option(None, "--category", help="Service category, buyer side only")


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn ledger errors into a red message and a failing exit code."""
    try:
        yield
    except LedgerError as e:
        _fail(str(e))


def _record_type(side: Side):
    return UsageEvent if side is Side.SELLER else SpendingEvent


def _store(config: LedgerConfig, side: Side) -> EventStore:
    store = EventStore(_record_type(side), config.storage.db_path)
    store.initialize_schema()
    return store


def _logger(config: LedgerConfig, side: Side) -> EventLogger:
    store = _store(config, side)
    tenancy = config.tenancy
    if side is Side.SELLER:
        return UsageLogger(store, default_tenant_id=tenancy.default_tenant_id)
    return SpendingLogger(
        store,
        default_tenant_id=tenancy.default_tenant_id,
        default_buyer_id=tenancy.default_buyer_id,
        default_buyer_name=tenancy.default_buyer_name,
    )


def _service(config: LedgerConfig, side: Side) -> AggregationService:
    return AggregationService(_store(config, side), config.reporting.timezone)


def _query(
    config: LedgerConfig,
    side: Side,
    start: Optional[datetime],
    end: Optional[datetime],
    actor: Optional[str] = None,
    service: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 0,
    size: Optional[int] = None,
) -> QueryFilter:
    """Build a filter over the requested window, scoped by configured defaults."""
    end = as_utc(end) if end else utc_now()
    start = as_utc(start) if start else end - timedelta(days=config.reporting.default_days)
    query = QueryFilter(
        start=start,
        end=end,
        actor_id=actor,
        service_id=service,
        status=optional_enum(_record_type(side).STATUS_TYPE, status, "status"),
        category=optional_enum(ServiceCategory, category, "category"),
        page=page,
        size=size,
    )
    query = query.with_scope("tenant_id", config.tenancy.default_tenant_id)
    if side is Side.BUYER:
        query = query.with_scope("actor_id", config.tenancy.default_buyer_id)
    return query


def _ratio(value: float) -> str:
    return f"{value:.2f}"


def _display(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, Enum):
        return value.name
    return str(value)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    ),
):
    """x402 payment ledger CLI."""
    try:
        ledger_config = load_config(str(config) if config else None)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(f"Invalid configuration: {e}")

    setup_logging(ledger_config.logging.level, ledger_config.logging.format)
    ctx.obj = ledger_config
    if ctx.invoked_subcommand is None:
        console.print("x402 ledger - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Create the seller and buyer event tables."""
    with _reported_errors():
        for side in Side:
            _store(ctx.obj, side)
    console.print(f"[green]✓[/] Database initialized at {ctx.obj.storage.db_path}")


@app.command("log")
def log_event(
    ctx: typer.Context,
    status: str = typer.Option(..., "--status", help="Event status, e.g. SUCCESS"),
    side: Side = SIDE_OPTION,
    actor: Optional[str] = typer.Option(None, "--actor", help="Agent or buyer id"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint"),
    method: Optional[str] = typer.Option(None, "--method"),
    network: Optional[str] = typer.Option(None, "--network"),
    asset: Optional[str] = typer.Option(None, "--asset"),
    amount: Optional[int] = typer.Option(None, "--amount", help="Amount in atomic units"),
    tx_hash: Optional[str] = typer.Option(None, "--tx-hash"),
    latency_ms: Optional[int] = typer.Option(None, "--latency-ms"),
    service_id: Optional[str] = typer.Option(None, "--service-id", help="Buyer side only"),
    service_name: Optional[str] = typer.Option(None, "--service-name", help="Buyer side only"),
    category: Optional[str] = typer.Option(None, "--category", help="Buyer side only"),
):
    """Record one event."""
    values = {
        "actor_id": actor,
        "endpoint": endpoint,
        "method": method,
        "network": network,
        "asset": asset,
        "amount_atomic": amount,
        "tx_hash": tx_hash,
        "latency_ms": latency_ms,
        "service_id": service_id,
        "service_name": service_name,
        "category": category,
    }
    with _reported_errors():
        event = _logger(ctx.obj, side).log(
            status=status, **{k: v for k, v in values.items() if v is not None}
        )
    console.print(f"[green]✓[/] Logged {event.KIND} event {event.id} ({event.status.name})")


@app.command()
def overview(
    ctx: typer.Context,
    side: Side = SIDE_OPTION,
    start: Optional[datetime] = FROM_OPTION,
    end: Optional[datetime] = TO_OPTION,
    category: Optional[str] = CATEGORY_OPTION,
    actor: Optional[str] = typer.Option(None, "--actor"),
):
    """Show headline totals for a time window."""
    with _reported_errors():
        query = _query(ctx.obj, side, start, end, actor=actor, category=category)
        result = _service(ctx.obj, side).query_overview(query)

    table = Table(title=f"{side.value.title()} overview")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Window", f"{result.start:%Y-%m-%d %H:%M} .. {result.end:%Y-%m-%d %H:%M}")
    table.add_row("Events", str(result.total_count))
    table.add_row("Successful", str(result.success_count))
    table.add_row("Amount (atomic)", str(result.amount_sum))
    table.add_row("Success rate %", _ratio(result.success_rate))
    table.add_row("Avg cost", _ratio(result.avg_cost))
    console.print(table)


@app.command()
def top(
    ctx: typer.Context,
    dimension: str = typer.Argument(..., help="actor, endpoint, status, service, category or budget"),
    side: Side = SIDE_OPTION,
    start: Optional[datetime] = FROM_OPTION,
    end: Optional[datetime] = TO_OPTION,
    category: Optional[str] = CATEGORY_OPTION,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Defaults to reporting.top_limit"),
):
    """Rank groups of one dimension by amount."""
    with _reported_errors():
        dim = require_enum(Dimension, dimension, "dimension")
        query = _query(ctx.obj, side, start, end, category=category)
        groups = _service(ctx.obj, side).query_group_by(
            dim, query, limit or ctx.obj.reporting.top_limit
        )

    table = Table(title=f"Top {dim.value} ({side.value})")
    table.add_column(dim.value.title())
    table.add_column("Count", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Avg cost", justify="right")
    table.add_column("% of total", justify="right")
    for group in groups:
        key = _display(group.key)
        if group.label:
            key = f"{key} ({group.label})"
        table.add_row(
            key,
            str(group.count),
            str(group.amount_sum),
            _ratio(group.avg_cost),
            _ratio(group.percent_of_total),
        )
    console.print(table)


@app.command()
def daily(
    ctx: typer.Context,
    side: Side = SIDE_OPTION,
    start: Optional[datetime] = FROM_OPTION,
    end: Optional[datetime] = TO_OPTION,
    category: Optional[str] = CATEGORY_OPTION,
    status: Optional[str] = typer.Option(None, "--status", help="Only count this status"),
):
    """Show per-day counts and amounts in the reporting timezone."""
    with _reported_errors():
        service = _service(ctx.obj, side)
        query = _query(ctx.obj, side, start, end, category=category)
        buckets = service.query_daily(query, status)

    table = Table(title=f"Daily {side.value} activity ({ctx.obj.reporting.timezone})")
    table.add_column("Date")
    table.add_column("Count", justify="right")
    table.add_column("Amount", justify="right")
    for bucket in buckets:
        table.add_row(bucket.date.isoformat(), str(bucket.count), str(bucket.amount_sum))
    console.print(table)


def _events_table(title: str, events: Iterable[EventRecord]) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Created (UTC)")
    table.add_column("Status")
    table.add_column("Actor")
    table.add_column("Endpoint")
    table.add_column("Amount", justify="right")
    for event in events:
        table.add_row(
            str(event.id),
            f"{event.created_at:%Y-%m-%d %H:%M:%S}",
            event.status.name,
            _display(event.actor_id),
            _display(event.endpoint),
            _display(event.amount_atomic),
        )
    return table


@app.command()
def recent(
    ctx: typer.Context,
    side: Side = SIDE_OPTION,
    scope: Optional[str] = typer.Option(
        None, "--scope", help="Tenant (seller) or buyer (buyer) id; defaults from config"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Defaults to reporting.recent_limit"),
):
    """List the newest events."""
    config = ctx.obj
    if scope is None:
        tenancy = config.tenancy
        scope = tenancy.default_tenant_id if side is Side.SELLER else tenancy.default_buyer_id

    with _reported_errors():
        events = _service(config, side).query_recent(scope, limit or config.reporting.recent_limit)
    console.print(_events_table(f"Recent {side.value} events", events))


@app.command()
def events(
    ctx: typer.Context,
    side: Side = SIDE_OPTION,
    start: Optional[datetime] = FROM_OPTION,
    end: Optional[datetime] = TO_OPTION,
    category: Optional[str] = CATEGORY_OPTION,
    status: Optional[str] = typer.Option(None, "--status"),
    actor: Optional[str] = typer.Option(None, "--actor"),
    service: Optional[str] = typer.Option(None, "--service", help="Buyer side only"),
    page: int = typer.Option(0, "--page"),
    size: Optional[int] = typer.Option(None, "--size"),
):
    """Page through matching events, newest first."""
    with _reported_errors():
        query = _query(
            ctx.obj, side, start, end,
            actor=actor, service=service, status=status, category=category,
            page=page, size=size,
        )
        result = _service(ctx.obj, side).query_events(query)

    console.print(_events_table(f"{side.value.title()} events", result.items))
    console.print(
        f"Page {result.page + 1} of {max(result.total_pages, 1)} "
        f"({result.total} matching events)"
    )


@app.command()
def seed(
    ctx: typer.Context,
    side: Side = SIDE_OPTION,
    count: int = typer.Option(100, "--count"),
    days: int = typer.Option(30, "--days"),
    random_seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible data"),
):
    """Fill the ledger with demo events."""
    with _reported_errors():
        logger = _logger(ctx.obj, side)
        try:
            if side is Side.SELLER:
                summary = seed_usage_events(logger, count=count, days=days, seed=random_seed)
            else:
                summary = seed_spending_events(logger, count=count, days=days, seed=random_seed)
        except ValueError as e:
            _fail(str(e))

    console.print(
        f"[green]✓[/] Created {summary.total_events} {side.value} events over "
        f"{summary.days} days ({summary.success_count} successful, "
        f"{summary.amount_sum} atomic units)"
    )


@app.command()
def clear(
    ctx: typer.Context,
    side: Side = SIDE_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every event of one side. Meant for demo and test resets."""
    if not yes:
        typer.confirm(f"Delete all {side.value} events?", abort=True)
    with _reported_errors():
        removed = _service(ctx.obj, side).clear_all()
    console.print(f"[green]✓[/] Removed {removed} {side.value} events")


if __name__ == "__main__":
    app()
