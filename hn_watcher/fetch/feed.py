"""
Hacker News feed client.

Reads the "new stories" identifier list (newest first) and individual items
from the Hacker News Firebase API, and selects the items published inside
the recency window. Every request goes through the retry policy in
``hn_watcher.fetch.retry``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable

import httpx

from ..config import FeedConfig, RetryConfig
from ..core.types import Item
from ..errors import TransportError, UpstreamRejection
from ..logging_utils import log_event
from .retry import Sleeper, call_with_retry

logger = logging.getLogger("hn_watcher.feed")


def is_recent(timestamp: float, window_seconds: float, now: float) -> bool:
    """Return True when ``timestamp`` lies within ``window_seconds`` of ``now``.

    The boundary is inclusive: an item exactly ``window_seconds`` old is recent.
    """
    return now - timestamp <= window_seconds


def is_deliverable(item: Item) -> bool:
    """Liveness and title checks applied alongside the recency check."""
    if item.deleted or item.dead:
        return False
    return bool(item.title)


def filter_recent_items(items: Iterable[Item], window_seconds: float, now: float) -> list[Item]:
    """Keep live, titled items whose publish time is inside the window."""
    return [
        item
        for item in items
        if item.time is not None and is_recent(item.time, window_seconds, now) and is_deliverable(item)
    ]


class FeedClient:
    """Async client for the Hacker News API.

    Args:
        feed_cfg: Endpoint, window and scan settings
        retry_cfg: Backoff policy for every request
        client: Optional pre-built ``httpx.AsyncClient`` (tests pass one with a
            mock transport). When omitted the client is created and owned here.
        sleep: Awaitable sleep used between retries
        clock: Returns the current time in epoch seconds
    """

    def __init__(
        self,
        feed_cfg: FeedConfig,
        retry_cfg: RetryConfig,
        client: httpx.AsyncClient | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self._cfg = feed_cfg
        self._retry = retry_cfg
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=feed_cfg.timeout_seconds,
            headers={"User-Agent": feed_cfg.user_agent},
            follow_redirects=True,
            trust_env=feed_cfg.trust_env,
        )
        self._sleep = sleep
        self._clock = clock

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, path: str) -> Any:
        url = f"{self._cfg.base_url.rstrip('/')}/{path}"

        async def attempt() -> Any:
            try:
                resp = await self._client.get(url)
            except httpx.HTTPError as exc:
                raise TransportError(f"{type(exc).__name__}: {exc}") from exc
            if not resp.is_success:
                raise UpstreamRejection(url, resp.status_code)
            try:
                return resp.json()
            except ValueError as exc:
                raise TransportError(f"Malformed JSON from {url}") from exc

        return await call_with_retry(attempt, self._retry, url, sleep=self._sleep)

    async def fetch_new_story_ids(self) -> list[int]:
        """Return the newest story identifiers, newest first.

        Raises:
            TransportError: Network failure or unexpected body after retries
            UpstreamRejection: Non-success status after retries
        """
        data = await self._get_json("newstories.json")
        if not isinstance(data, list):
            raise TransportError(f"Expected a list of identifiers, got {type(data).__name__}")
        return [value for value in data if isinstance(value, int)]

    async def fetch_item(self, item_id: int) -> Item | None:
        """Fetch one item; ``None`` when the API has no usable body for it."""
        data = await self._get_json(f"item/{item_id}.json")
        if not isinstance(data, dict):
            return None
        try:
            return Item.from_api(data)
        except ValueError as exc:
            logger.debug("Skipping item %s: %s", item_id, exc)
            return None

    async def fetch_recent_items(self, window_seconds: float | None = None) -> list[Item]:
        """Return live items published inside the window, newest first.

        Only the first ``scan_limit`` identifiers are inspected. Because the
        list is ordered newest first, the scan stops at the first item whose
        publish time is known and older than the window. Items without a
        publish time are skipped without stopping the scan.

        A failure to read the identifier list is logged and yields an empty
        list; a failure to read one item skips that item.
        """
        window = self._cfg.window_seconds if window_seconds is None else window_seconds
        now = self._clock()

        try:
            ids = await self.fetch_new_story_ids()
        except (TransportError, UpstreamRejection) as exc:
            log_event(
                logger,
                "Failed to fetch story list",
                level=logging.ERROR,
                event="feed_fetch_failed",
                error=str(exc),
            )
            return []

        scanned = ids[: self._cfg.scan_limit]
        recent: list[Item] = []
        stopped_early = False

        for item_id in scanned:
            try:
                item = await self.fetch_item(item_id)
            except (TransportError, UpstreamRejection) as exc:
                log_event(
                    logger,
                    f"Skipping item {item_id}: {exc}",
                    level=logging.WARNING,
                    event="item_fetch_failed",
                    item_id=item_id,
                    error=str(exc),
                )
                continue

            if item is None or item.time is None:
                logger.debug("Skipping item %s: no publish time", item_id)
                continue

            if not is_recent(item.time, window, now):
                # Identifiers are newest first, everything after this is older.
                stopped_early = True
                break

            if is_deliverable(item):
                recent.append(item)
            else:
                logger.debug("Skipping item %s: deleted, dead or untitled", item_id)

        if not stopped_early and len(ids) > len(scanned):
            log_event(
                logger,
                f"All {len(scanned)} scanned items were recent; older recent items may be missed",
                level=logging.WARNING,
                event="scan_limit_reached",
                scan_limit=self._cfg.scan_limit,
            )

        log_event(
            logger,
            f"Found {len(recent)} recent items",
            event="feed_scan_complete",
            scanned=len(scanned),
            recent=len(recent),
            stopped_early=stopped_early,
        )
        return recent

    async def fetch_newest_item(self, window_seconds: float | None = None) -> Item | None:
        """Return the single newest item if it is recent and deliverable."""
        window = self._cfg.window_seconds if window_seconds is None else window_seconds
        now = self._clock()

        try:
            ids = await self.fetch_new_story_ids()
            if not ids:
                return None
            item = await self.fetch_item(ids[0])
        except (TransportError, UpstreamRejection) as exc:
            log_event(
                logger,
                "Failed to fetch newest item",
                level=logging.ERROR,
                event="feed_fetch_failed",
                error=str(exc),
            )
            return None

        if item is None or item.time is None:
            return None
        if not is_recent(item.time, window, now) or not is_deliverable(item):
            logger.info("Newest item %s is not within the window", item.id)
            return None
        return item
