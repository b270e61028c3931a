"""
Dispatch pipeline orchestration for hn-watcher.

One run moves through these stages:
1. Fetch recent items from the feed (no items: stop)
2. Read every subscriber from the store (none or store down: stop)
3. Push every item to every subscriber, subscribers concurrently
4. Delete subscribers whose endpoint was reported gone (404/410)
5. Log a RunSummary

``run_dispatch`` is the outer boundary used by the CLI and the scheduler:
it never raises, so a broken run cannot stop the next scheduled one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import time
from typing import Awaitable, Callable, Union

from .config import AppConfig
from .core.types import (
    DeliveryOutcome,
    DeliveryResult,
    Item,
    RunSummary,
    SubscriberRecord,
)
from .delivery.payload import build_payload
from .delivery.transport import DeliveryTransport, create_transport
from .errors import StoreUnavailable
from .fetch.feed import FeedClient
from .logging_utils import log_event
from .store.subscribers import SubscriberStore

logger = logging.getLogger("hn_watcher.runner")

# A ready store, or a zero-argument callable that opens one on first use.
StoreSource = Union[SubscriberStore, Callable[[], SubscriberStore]]


def _resolve_store(source: StoreSource) -> SubscriberStore:
    return source() if callable(source) else source


@dataclass
class SubscriberOutcome:
    """Results collected for one subscriber during a run.

    Attributes:
        key: Subscriber key
        results: One DeliveryResult per attempted item, in feed order
        skipped: Items not attempted after a permanent failure
    """

    key: str
    results: list[DeliveryResult] = field(default_factory=list)
    skipped: int = 0

    @property
    def permanently_failed(self) -> bool:
        return any(r.outcome is DeliveryOutcome.PERMANENT for r in self.results)


async def dispatch(
    feed: FeedClient,
    store: StoreSource,
    transport: DeliveryTransport,
    cfg: AppConfig,
) -> RunSummary:
    """Run the pipeline once and return its summary.

    ``store`` may be a factory; it is only called once the feed produced
    items, so an empty run never opens the subscriber database. Store calls
    run in a worker thread.

    Once a subscriber reports a permanent failure its remaining items are
    skipped for this run; the subscriber is deleted after every delivery
    has finished.
    """
    summary = RunSummary()

    items = await feed.fetch_recent_items(cfg.feed.window_seconds)
    summary.items = [item.id for item in items]
    if not items:
        log_event(logger, "No recent stories found", event="run_no_items")
        summary.status = "no_items"
        return summary

    try:
        db = await asyncio.to_thread(_resolve_store, store)
        subscribers = await asyncio.to_thread(db.list_all)
    except StoreUnavailable as exc:
        log_event(
            logger,
            "Failed to fetch subscribers",
            level=logging.ERROR,
            event="store_read_failed",
            error=str(exc),
        )
        summary.status = "no_subscribers"
        summary.error = str(exc)
        return summary

    summary.subscribers = len(subscribers)
    log_event(
        logger,
        f"Found {len(subscribers)} active subscriptions",
        event="subscribers_loaded",
        count=len(subscribers),
    )
    if not subscribers:
        summary.status = "no_subscribers"
        return summary

    payloads = [(item, build_payload(item, cfg.delivery.icon)) for item in items]
    semaphore = asyncio.Semaphore(max(1, cfg.dispatch.concurrency))

    async def _notify(record: SubscriberRecord) -> SubscriberOutcome:
        async with semaphore:
            outcome = SubscriberOutcome(key=record.key)
            for index, (item, payload) in enumerate(payloads):
                result = await _deliver_one(transport, record, item, payload)
                outcome.results.append(result)
                if result.outcome is DeliveryOutcome.PERMANENT:
                    outcome.skipped = len(payloads) - index - 1
                    break
            return outcome

    outcomes = await asyncio.gather(*(_notify(record) for record in subscribers))

    for outcome in outcomes:
        for result in outcome.results:
            if result.outcome is DeliveryOutcome.SUCCESS:
                summary.successes += 1
            elif result.outcome is DeliveryOutcome.PERMANENT:
                summary.permanent_failures += 1
            else:
                summary.transient_failures += 1
        summary.skipped += outcome.skipped

    await _reconcile(db, outcomes, summary)

    log_event(
        logger,
        f"Notification job complete: {summary.successes} sent, "
        f"{summary.transient_failures + summary.permanent_failures} failed, "
        f"{summary.removed} removed",
        event="run_complete",
        items=len(summary.items),
        subscribers=summary.subscribers,
        successes=summary.successes,
        transient_failures=summary.transient_failures,
        permanent_failures=summary.permanent_failures,
        skipped=summary.skipped,
        removed=summary.removed,
        removal_failures=summary.removal_failures,
    )
    return summary


async def _deliver_one(
    transport: DeliveryTransport,
    record: SubscriberRecord,
    item: Item,
    payload: str,
) -> DeliveryResult:
    try:
        result = await transport.deliver(record.descriptor, payload)
    except Exception as exc:  # noqa: BLE001
        result = DeliveryResult(
            outcome=DeliveryOutcome.TRANSIENT,
            error=f"{type(exc).__name__}: {exc}",
        )
    if not result.ok:
        log_event(
            logger,
            f"Failed to send item {item.id} to subscription {record.key[:12]}",
            level=logging.WARNING,
            event="delivery_failed",
            key=record.key,
            item_id=item.id,
            outcome=result.outcome.value,
            status_code=result.status_code,
            error=result.error,
        )
    return result


async def _reconcile(
    store: SubscriberStore,
    outcomes: list[SubscriberOutcome],
    summary: RunSummary,
) -> None:
    """Delete every subscriber that failed permanently during the run."""
    for outcome in outcomes:
        if not outcome.permanently_failed:
            continue
        try:
            removed = await asyncio.to_thread(store.delete, outcome.key)
        except StoreUnavailable as exc:
            summary.removal_failures += 1
            log_event(
                logger,
                f"Failed to remove invalid subscription {outcome.key}; keeping it for the next run",
                level=logging.ERROR,
                event="subscriber_remove_failed",
                key=outcome.key,
                error=str(exc),
            )
            continue
        if removed:
            summary.removed += 1
            log_event(
                logger,
                f"Removed invalid subscription: {outcome.key}",
                event="subscriber_removed",
                key=outcome.key,
            )


async def run_dispatch(
    cfg: AppConfig,
    feed: FeedClient | None = None,
    store: StoreSource | None = None,
    transport: DeliveryTransport | None = None,
) -> RunSummary:
    """Run one dispatch with top-level error isolation.

    Missing collaborators are built from ``cfg`` and closed afterwards. The
    default store is opened lazily by ``dispatch``, only when there are items.
    Any exception, including the optional run deadline expiring, is logged
    and reported as a "failed" summary instead of propagating.
    """
    owns_feed = feed is None
    opened: list[SubscriberStore] = []
    started = time.monotonic()
    log_event(logger, "Starting notification run", event="run_start")

    def _open_store() -> SubscriberStore:
        db = SubscriberStore(cfg.store.path)
        opened.append(db)
        return db

    try:
        if feed is None:
            feed = FeedClient(cfg.feed, cfg.retry)
        if store is None:
            store = _open_store
        if transport is None:
            transport = create_transport(cfg.delivery, cfg.vapid)

        run = dispatch(feed, store, transport, cfg)
        if cfg.dispatch.run_timeout_seconds:
            summary = await asyncio.wait_for(run, timeout=cfg.dispatch.run_timeout_seconds)
        else:
            summary = await run
    except Exception as exc:  # noqa: BLE001
        logger.exception("Notification run failed")
        summary = RunSummary(status="failed", error=f"{type(exc).__name__}: {exc}")
    finally:
        if owns_feed and feed is not None:
            await feed.aclose()
        for db in opened:
            db.close()

    log_event(
        logger,
        f"Run finished with status {summary.status}",
        event="run_finished",
        status=summary.status,
        duration_seconds=round(time.monotonic() - started, 3),
    )
    return summary


def run_once(cfg: AppConfig, **collaborators) -> RunSummary:
    """Synchronous entry point for cron-style invocation."""
    return asyncio.run(run_dispatch(cfg, **collaborators))


async def watch(
    cfg: AppConfig,
    max_runs: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_summary: Callable[[RunSummary], None] | None = None,
    **collaborators,
) -> None:
    """Invoke a run every ``dispatch.interval_seconds``, one at a time.

    Args:
        cfg: Application configuration
        max_runs: Stop after this many runs (None runs forever)
        sleep: Awaitable sleep, replaceable in tests
        on_summary: Called with each run's summary
        **collaborators: Forwarded to ``run_dispatch``
    """
    runs = 0
    while max_runs is None or runs < max_runs:
        started = time.monotonic()
        summary = await run_dispatch(cfg, **collaborators)
        runs += 1
        if on_summary is not None:
            on_summary(summary)
        if max_runs is not None and runs >= max_runs:
            break
        elapsed = time.monotonic() - started
        await sleep(max(0.0, cfg.dispatch.interval_seconds - elapsed))
