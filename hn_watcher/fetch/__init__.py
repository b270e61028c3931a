"""
Feed access.

This package handles HTTP access to the Hacker News API and the
backoff policy applied to every request.
"""

from .feed import FeedClient, filter_recent_items, is_deliverable, is_recent
from .retry import backoff_delay_ms, backoff_schedule_ms, call_with_retry

__all__ = [
    "FeedClient",
    "filter_recent_items",
    "is_deliverable",
    "is_recent",
    "backoff_delay_ms",
    "backoff_schedule_ms",
    "call_with_retry",
]
