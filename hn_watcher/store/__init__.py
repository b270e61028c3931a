"""Subscriber persistence."""

from .subscribers import SubscriberStore, derive_key

__all__ = ["SubscriberStore", "derive_key"]
