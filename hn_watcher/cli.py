"""
Command-line interface for hn-watcher.

Uses Typer to expose the dispatch run, the scheduler loop, the newest-item
check, subscriber management and the registration API server. Loads .env
files so VAPID keys can live outside the config file.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from .config import AppConfig, load_config
from .core.types import RunSummary
from .errors import HNWatcherError, ValidationError
from .fetch.feed import FeedClient
from .logging_utils import setup_logging
from .registration import register, unregister
from .runner import run_once, watch as watch_loop
from .store.subscribers import SubscriberStore

app = typer.Typer(add_completion=False, help="Hacker News push notification dispatcher.")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", exists=True, readable=True, help="YAML config file.")
LogLevelOption = typer.Option(None, "--log-level", help="Logging level.")
StoreOption = typer.Option(None, "--store", help="Subscriber database path.")


def _prepare(config: Path | None, log_level: str | None, store: Path | None) -> AppConfig:
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    if store is not None:
        cfg.store.path = str(store)
    setup_logging(cfg.logging)
    return cfg


def _render_summary(summary: RunSummary) -> None:
    table = Table(title=f"Dispatch run: {summary.status}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Items", str(len(summary.items)))
    table.add_row("Subscribers", str(summary.subscribers))
    table.add_row("Delivered", str(summary.successes))
    table.add_row("Transient failures", str(summary.transient_failures))
    table.add_row("Permanent failures", str(summary.permanent_failures))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Removed", str(summary.removed))
    if summary.removal_failures:
        table.add_row("Removal failures", str(summary.removal_failures))
    console.print(table)
    if summary.error:
        console.print(f"[red]Error:[/red] {summary.error}")


@app.command()
def run(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    store: Path | None = StoreOption,
    window: int | None = typer.Option(None, "--window", help="Recency window in seconds."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log pushes instead of sending them."),
):
    """Run the notification pipeline once (suitable for cron)."""
    cfg = _prepare(config, log_level, store)
    if window is not None:
        cfg.feed.window_seconds = window
    if dry_run:
        cfg.delivery.transport = "log"
    summary = run_once(cfg)
    _render_summary(summary)


@app.command()
def watch(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    store: Path | None = StoreOption,
    interval: int | None = typer.Option(None, "--interval", help="Seconds between runs."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log pushes instead of sending them."),
):
    """Run the pipeline on a fixed interval until interrupted."""
    cfg = _prepare(config, log_level, store)
    if interval is not None:
        cfg.dispatch.interval_seconds = interval
    if dry_run:
        cfg.delivery.transport = "log"
    try:
        asyncio.run(watch_loop(cfg, on_summary=_render_summary))
    except KeyboardInterrupt:
        console.print("Watch stopped.")


@app.command()
def latest(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    window: int | None = typer.Option(None, "--window", help="Recency window in seconds."),
):
    """Show the newest story if it was published within the window."""
    cfg = _prepare(config, log_level, None)

    async def _fetch():
        async with FeedClient(cfg.feed, cfg.retry) as feed:
            return await feed.fetch_newest_item(window)

    item = asyncio.run(_fetch())
    if item is None:
        console.print("No recent story.")
        return
    console.print(f"[bold]{item.title}[/bold]")
    console.print(f"by {item.author or 'unknown'} • {item.score or 0} points")
    console.print(item.target_url)


@app.command()
def subscribe(
    subscription: Path | None = typer.Option(
        None, "--file", "-f", exists=True, readable=True, help="PushSubscription JSON file."
    ),
    endpoint: str | None = typer.Option(None, "--endpoint", help="Push endpoint URL."),
    p256dh: str = typer.Option("", "--p256dh", help="Client public key."),
    auth: str = typer.Option("", "--auth", help="Client auth secret."),
    config: Path | None = ConfigOption,
    store: Path | None = StoreOption,
):
    """Register a push subscription."""
    cfg = _prepare(config, None, store)
    if subscription is not None:
        data = json.loads(subscription.read_text(encoding="utf-8"))
    else:
        data = {"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}}

    try:
        db = SubscriberStore(cfg.store.path)
        try:
            key = register(db, data)
        finally:
            db.close()
    except ValidationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    except HNWatcherError as exc:
        console.print(f"[red]Failed to store subscription:[/red] {exc}")
        raise typer.Exit(code=1)
    console.print(f"Subscribed: {key}")


@app.command()
def unsubscribe(
    endpoint: str = typer.Option(..., "--endpoint", help="Push endpoint URL."),
    config: Path | None = ConfigOption,
    store: Path | None = StoreOption,
):
    """Remove a push subscription."""
    cfg = _prepare(config, None, store)
    try:
        db = SubscriberStore(cfg.store.path)
        try:
            removed = unregister(db, {"endpoint": endpoint})
        finally:
            db.close()
    except HNWatcherError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    console.print("Removed." if removed else "Not subscribed.")


@app.command()
def subscribers(
    config: Path | None = ConfigOption,
    store: Path | None = StoreOption,
):
    """List stored subscriptions."""
    cfg = _prepare(config, None, store)
    db = SubscriberStore(cfg.store.path)
    try:
        records = db.list_all()
    finally:
        db.close()

    table = Table(title=f"{len(records)} subscribers")
    table.add_column("Key")
    table.add_column("Endpoint")
    table.add_column("Created")
    for record in records:
        endpoint = record.descriptor.endpoint
        if len(endpoint) > 60:
            endpoint = endpoint[:57] + "..."
        created = record.created_at.strftime("%Y-%m-%d %H:%M") if record.created_at else "N/A"
        table.add_row(record.key[:12], endpoint, created)
    console.print(table)


@app.command()
def serve(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    store: Path | None = StoreOption,
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
):
    """Serve the subscribe/unsubscribe HTTP API."""
    import uvicorn

    from .api import create_app

    cfg = _prepare(config, log_level, store)
    if not cfg.vapid.is_valid():
        console.print("[yellow]VAPID keys not configured; /subscribe will reject requests.[/yellow]")
    uvicorn.run(
        create_app(cfg),
        host=host or cfg.api.host,
        port=port or cfg.api.port,
    )


if __name__ == "__main__":
    app()
