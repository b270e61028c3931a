"""Error taxonomy shared by the feed client, store, delivery and registration layers."""

from __future__ import annotations


class HNWatcherError(Exception):
    """Base class for all hn-watcher errors."""


class TransportError(HNWatcherError):
    """Network-level failure (connection refused, timeout, protocol error)."""


class UpstreamRejection(HNWatcherError):
    """An upstream service answered with a non-success status code."""

    def __init__(self, url: str, status_code: int, message: str | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message or f"{url} returned HTTP {status_code}")


class StoreUnavailable(HNWatcherError):
    """The subscriber backend could not be read or written."""


class ValidationError(HNWatcherError):
    """A registration payload was rejected."""
