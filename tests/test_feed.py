"""Tests for the Hacker News feed client."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from hn_watcher.config import FeedConfig, RetryConfig
from hn_watcher.core.types import Item
from hn_watcher.fetch.feed import FeedClient, filter_recent_items, is_deliverable, is_recent

BASE = "https://hn.test/v0"
NOW = 1_700_000_000


async def _no_sleep(seconds: float) -> None:
    return None


def _story(item_id: int, age_seconds: int | None, **extra: Any) -> dict[str, Any]:
    story: dict[str, Any] = {"id": item_id, "title": f"Story {item_id}", "by": "pg", "score": 10}
    if age_seconds is not None:
        story["time"] = NOW - age_seconds
    story.update(extra)
    return story


class FakeHN:
    """Serves newstories.json and item bodies, recording every request path."""

    def __init__(self, ids: list[int], items: dict[int, Any], failing: set[int] | None = None):
        self.ids = ids
        self.items = items
        self.failing = failing or set()
        self.requested: list[str] = []
        self.list_status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requested.append(path)
        if path == "/v0/newstories.json":
            if self.list_status != 200:
                return httpx.Response(self.list_status)
            return httpx.Response(200, json=self.ids)
        item_id = int(path.rsplit("/", 1)[1].split(".")[0])
        if item_id in self.failing:
            return httpx.Response(500)
        if self.items.get(item_id) is None:
            return httpx.Response(200, content=b"null")
        return httpx.Response(200, json=self.items[item_id])

    def item_requests(self, item_id: int) -> int:
        return self.requested.count(f"/v0/item/{item_id}.json")


def _run(fake: FakeHN, method: str, *args, feed_cfg: FeedConfig | None = None):
    async def _inner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)) as client:
            feed = FeedClient(
                feed_cfg or FeedConfig(base_url=BASE),
                RetryConfig(),
                client=client,
                sleep=_no_sleep,
                clock=lambda: NOW,
            )
            return await getattr(feed, method)(*args)

    return asyncio.run(_inner())


def test_is_recent_boundary_is_inclusive():
    assert is_recent(NOW - 3600, 3600, NOW)
    assert is_recent(NOW, 3600, NOW)
    assert is_recent(NOW - 30 * 60, 3600, NOW)
    assert not is_recent(NOW - 3601, 3600, NOW)
    assert not is_recent(NOW - 24 * 3600, 3600, NOW)


def test_filter_excludes_deleted_dead_and_untitled_items():
    items = [
        Item(id=1, title="Live", time=NOW - 60),
        Item(id=2, title="Deleted", time=NOW - 60, deleted=True),
        Item(id=3, title="Dead", time=NOW - 60, dead=True),
        Item(id=4, title=None, time=NOW - 60),
        Item(id=5, title="Old", time=NOW - 7200),
        Item(id=6, title="No time"),
    ]

    result = filter_recent_items(items, 3600, NOW)

    assert [item.id for item in result] == [1]
    assert not is_deliverable(items[1])
    assert not is_deliverable(items[2])


def test_item_target_url_falls_back_to_discussion_page():
    assert Item(id=123, url="https://example.com/a").target_url == "https://example.com/a"
    assert Item(id=456).target_url == "https://news.ycombinator.com/item?id=456"
    assert Item(id=0).target_url == "https://news.ycombinator.com"


def test_item_from_api_tolerates_missing_fields():
    item = Item.from_api({"id": 7})
    assert item.title is None
    assert item.time is None
    assert item.deleted is False
    assert item.author is None


def test_scan_stops_at_first_item_outside_window():
    fake = FakeHN(
        ids=[1, 2, 3],
        items={1: _story(1, 30 * 60), 2: _story(2, 90 * 60), 3: _story(3, 10 * 60)},
    )

    result = _run(fake, "fetch_recent_items", 3600)

    assert [item.id for item in result] == [1]
    assert fake.item_requests(3) == 0


def test_missing_publish_time_does_not_stop_scan():
    fake = FakeHN(
        ids=[1, 2, 3],
        items={1: _story(1, None), 2: _story(2, 60), 3: _story(3, 7200)},
    )

    result = _run(fake, "fetch_recent_items", 3600)

    assert [item.id for item in result] == [2]


def test_filtered_recent_item_does_not_stop_scan():
    fake = FakeHN(
        ids=[1, 2, 3],
        items={1: _story(1, 60, dead=True), 2: _story(2, 120), 3: _story(3, 7200)},
    )

    result = _run(fake, "fetch_recent_items", 3600)

    assert [item.id for item in result] == [2]


def test_failed_item_is_skipped_after_retries():
    fake = FakeHN(
        ids=[1, 2, 3],
        items={2: _story(2, 60), 3: _story(3, 120)},
        failing={1},
    )

    result = _run(fake, "fetch_recent_items", 3600)

    assert [item.id for item in result] == [2, 3]
    assert fake.item_requests(1) == 4


def test_null_item_body_is_skipped():
    fake = FakeHN(ids=[1, 2], items={1: None, 2: _story(2, 60)})

    result = _run(fake, "fetch_recent_items", 3600)

    assert [item.id for item in result] == [2]


def test_list_failure_returns_empty_result():
    fake = FakeHN(ids=[1], items={1: _story(1, 60)})
    fake.list_status = 503

    result = _run(fake, "fetch_recent_items", 3600)

    assert result == []
    assert fake.requested.count("/v0/newstories.json") == 4
    assert fake.item_requests(1) == 0


def test_transport_errors_are_retried_then_skipped():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    async def _inner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            feed = FeedClient(FeedConfig(base_url=BASE), RetryConfig(), client=client, sleep=_no_sleep)
            return await feed.fetch_recent_items(3600)

    assert asyncio.run(_inner()) == []
    assert calls == 4


def test_scan_is_limited_to_prefix():
    ids = list(range(1, 11))
    fake = FakeHN(ids=ids, items={i: _story(i, i) for i in ids})

    result = _run(fake, "fetch_recent_items", 3600, feed_cfg=FeedConfig(base_url=BASE, scan_limit=5))

    assert [item.id for item in result] == [1, 2, 3, 4, 5]
    assert fake.item_requests(6) == 0


def test_fetch_newest_item_returns_recent_story():
    fake = FakeHN(ids=[9, 8], items={9: _story(9, 60), 8: _story(8, 120)})

    item = _run(fake, "fetch_newest_item", 3600)

    assert item is not None
    assert item.id == 9
    assert fake.item_requests(8) == 0


def test_fetch_newest_item_ignores_old_story():
    fake = FakeHN(ids=[9], items={9: _story(9, 7200)})
    assert _run(fake, "fetch_newest_item", 3600) is None


def test_fetch_newest_item_handles_feed_outage():
    fake = FakeHN(ids=[9], items={9: _story(9, 60)})
    fake.list_status = 500
    assert _run(fake, "fetch_newest_item", 3600) is None


def test_item_from_api_treats_malformed_numbers_as_missing():
    item = Item.from_api({"id": "12", "time": "yesterday", "score": None})
    assert item.id == 12
    assert item.time is None
    assert item.score is None


@pytest.mark.parametrize("bad_id", [None, "abc", True])
def test_item_from_api_rejects_unusable_id(bad_id):
    with pytest.raises(ValueError):
        Item.from_api({"id": bad_id})


def test_malformed_item_bodies_are_skipped():
    fake = FakeHN(
        ids=[1, 2, 3, 4],
        items={
            1: {"id": None, "title": "No id", "time": NOW - 60},
            2: {"id": 2, "title": "Bad time", "time": "soon"},
            3: _story(3, 60),
            4: _story(4, 7200),
        },
    )

    result = _run(fake, "fetch_recent_items", 3600)

    assert [item.id for item in result] == [3]
