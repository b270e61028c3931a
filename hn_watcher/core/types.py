"""
Core data types for hn-watcher.

This module defines the fundamental data structures used throughout the pipeline:
- Item: One Hacker News entry as returned by the feed
- DeliveryDescriptor: Push endpoint plus the secrets needed to encrypt for it
- SubscriberRecord: A stored descriptor with its derived key and timestamps
- DeliveryResult: Outcome of one push attempt
- RunSummary: Counters describing one dispatch run
- ParsedPayload / RawText: Tagged result of decoding a received push message
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

HN_HOME_URL = "https://news.ycombinator.com"


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass(frozen=True)
class Item:
    """A Hacker News item (story) as returned by the item endpoint.

    Every field except the identifier is optional because the API omits
    fields freely (deleted items carry little more than an id).

    Attributes:
        id: Feed-assigned identifier
        title: Headline
        author: Username of the submitter ("by" in the API)
        score: Points at fetch time
        time: Publish time in seconds since the epoch
        url: Target URL; absent for Ask HN and similar text posts
        deleted: Item was deleted
        dead: Item was killed by moderators or flags
    """

    id: int
    title: str | None = None
    author: str | None = None
    score: int | None = None
    time: int | None = None
    url: str | None = None
    deleted: bool = False
    dead: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Item":
        """Build an Item from the raw item JSON, tolerating missing fields.

        Non-numeric ``score`` or ``time`` values are treated as missing.

        Raises:
            ValueError: The body carries no usable integer ``id``
        """
        item_id = _optional_int(data.get("id"))
        if item_id is None:
            raise ValueError(f"Item body has no usable id: {data.get('id')!r}")
        return cls(
            id=item_id,
            title=data.get("title"),
            author=data.get("by"),
            score=_optional_int(data.get("score")),
            time=_optional_int(data.get("time")),
            url=data.get("url"),
            deleted=bool(data.get("deleted", False)),
            dead=bool(data.get("dead", False)),
        )

    @property
    def target_url(self) -> str:
        """The story URL, or its discussion page when the story has no URL."""
        if self.url:
            return self.url
        if self.id:
            return f"{HN_HOME_URL}/item?id={self.id}"
        return HN_HOME_URL


@dataclass(frozen=True)
class DeliveryDescriptor:
    """Everything needed to push to one browser subscription.

    Attributes:
        endpoint: Push service URL unique to the subscription
        p256dh: Client public key used for payload encryption
        auth: Client authentication secret
        expiration_time: Optional expiry reported by the browser (ms since epoch)
    """

    endpoint: str
    p256dh: str
    auth: str
    expiration_time: int | None = None

    @classmethod
    def from_subscription(cls, data: dict[str, Any]) -> "DeliveryDescriptor":
        """Build a descriptor from browser ``PushSubscription.toJSON()`` output."""
        keys = data.get("keys") or {}
        return cls(
            endpoint=data.get("endpoint") or "",
            p256dh=keys.get("p256dh") or "",
            auth=keys.get("auth") or "",
            expiration_time=data.get("expirationTime"),
        )

    def to_subscription_info(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "expirationTime": self.expiration_time,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


@dataclass
class SubscriberRecord:
    """A stored subscriber.

    Attributes:
        key: Derived from the descriptor endpoint, see ``derive_key``
        descriptor: Delivery descriptor
        created_at: First registration time
        last_verified: Most recent (re-)registration time
    """

    key: str
    descriptor: DeliveryDescriptor
    created_at: datetime | None = None
    last_verified: datetime | None = None


class DeliveryOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass
class DeliveryResult:
    """Outcome of one push attempt.

    Attributes:
        outcome: Success, transient failure or permanent failure
        status_code: HTTP status from the push service, when one was received
        error: Error description for failures
    """

    outcome: DeliveryOutcome
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is DeliveryOutcome.SUCCESS


@dataclass
class RunSummary:
    """Counters for one dispatch run. Logged, never persisted.

    Attributes:
        status: "completed", "no_items", "no_subscribers" or "failed"
        items: Identifiers of the items considered
        subscribers: Number of subscribers in the snapshot
        successes: Deliveries accepted by the push service
        transient_failures: Deliveries that may succeed on a later run
        permanent_failures: Deliveries rejected because the endpoint is gone
        skipped: Pairs not attempted because the subscriber had already failed permanently
        removed: Subscribers deleted during reconciliation
        removal_failures: Deletes that failed and will be retried next run
        error: Description of the failure that ended a "failed" run
    """

    status: str = "completed"
    items: list[int] = field(default_factory=list)
    subscribers: int = 0
    successes: int = 0
    transient_failures: int = 0
    permanent_failures: int = 0
    skipped: int = 0
    removed: int = 0
    removal_failures: int = 0
    error: str | None = None


@dataclass(frozen=True)
class Notification:
    """What a receiving client displays for one push message."""

    title: str
    body: str
    url: str
    icon: str | None = None


@dataclass(frozen=True)
class ParsedPayload:
    """A push message whose body decoded to a JSON object."""

    data: dict[str, Any]


@dataclass(frozen=True)
class RawText:
    """A push message whose body was not a JSON object."""

    text: str


PayloadResult = Union[ParsedPayload, RawText]
