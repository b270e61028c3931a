"""
HN Watcher - Hacker News push notification dispatcher.

This package polls the Hacker News "new stories" feed, picks the stories
published within the last hour, and sends a Web Push notification for each
of them to every registered browser subscription.

Main entry point is the CLI via the `hn-watcher` command.

Example:
    $ hn-watcher run --config config.yaml
"""

__all__ = ["__version__", "FeedClient", "SubscriberStore", "derive_key", "run_dispatch", "run_once"]
__version__ = "0.1.0"

from .fetch.feed import FeedClient
from .runner import run_dispatch, run_once
from .store.subscribers import SubscriberStore, derive_key
