"""
Notification payloads.

``build_payload`` serializes one item into the JSON message pushed to every
subscriber. ``parse_payload`` is the receiving side: it decodes a message
once into either ``ParsedPayload`` or ``RawText`` so display code never has
to probe the body again.
"""

from __future__ import annotations

import json

from ..core.types import HN_HOME_URL, Item, Notification, ParsedPayload, PayloadResult, RawText

DEFAULT_ICON = "https://news.ycombinator.com/y18.gif"
DEFAULT_TITLE = "Hacker News Update"


def notification_for(item: Item, icon: str = DEFAULT_ICON) -> Notification:
    return Notification(
        title=item.title or "New HN Story",
        body=f"by {item.author or 'unknown'} • {item.score or 0} points",
        url=item.target_url,
        icon=icon,
    )


def build_payload(item: Item, icon: str = DEFAULT_ICON) -> str:
    """Serialize the notification for ``item`` as a JSON string."""
    note = notification_for(item, icon)
    return json.dumps(
        {"title": note.title, "body": note.body, "url": note.url, "icon": note.icon},
        ensure_ascii=False,
    )


def parse_payload(data: bytes | str | None) -> PayloadResult:
    """Decode a received push message.

    JSON objects become ``ParsedPayload``; anything else (plain text,
    JSON scalars or arrays, undecodable bytes) becomes ``RawText``.
    """
    if data is None:
        return RawText("")
    if isinstance(data, bytes):
        text = data.decode("utf-8", errors="replace")
    else:
        text = data
    try:
        decoded = json.loads(text)
    except ValueError:
        return RawText(text)
    if isinstance(decoded, dict):
        return ParsedPayload(decoded)
    return RawText(text)


def to_display(result: PayloadResult) -> Notification:
    """Turn a decoded message into what the client shows, filling defaults."""
    if isinstance(result, RawText):
        return Notification(title=DEFAULT_TITLE, body=result.text, url=HN_HOME_URL)
    data = result.data
    return Notification(
        title=str(data.get("title") or DEFAULT_TITLE),
        body=str(data.get("body") or ""),
        url=str(data.get("url") or HN_HOME_URL),
        icon=data.get("icon"),
    )
