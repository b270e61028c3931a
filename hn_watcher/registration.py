"""Validation and storage of push subscriptions sent by browsers."""

from __future__ import annotations

import logging
from typing import Any

from .core.types import DeliveryDescriptor
from .errors import ValidationError
from .logging_utils import log_event
from .store.subscribers import SubscriberStore, derive_key

logger = logging.getLogger("hn_watcher.registration")


def validate_subscription(data: Any) -> DeliveryDescriptor:
    """Turn a ``PushSubscription`` JSON object into a descriptor.

    Raises:
        ValidationError: The object has no non-empty endpoint, or its keys
            are not a mapping of strings
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid subscription object")
    endpoint = data.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ValidationError("Invalid subscription object: missing endpoint")
    keys = data.get("keys")
    if keys is not None:
        if not isinstance(keys, dict):
            raise ValidationError("Invalid subscription object: keys must be an object")
        for name in ("p256dh", "auth"):
            value = keys.get(name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"Invalid subscription object: keys.{name} must be a string")
    expiration = data.get("expirationTime")
    if expiration is not None and not isinstance(expiration, (int, float)):
        raise ValidationError("Invalid subscription object: expirationTime must be a number")
    return DeliveryDescriptor.from_subscription(data)


def register(store: SubscriberStore, data: Any) -> str:
    """Validate and upsert a subscription. Returns the subscriber key."""
    descriptor = validate_subscription(data)
    key = store.upsert(descriptor)
    log_event(logger, f"Subscription stored: {key}", event="subscriber_stored", key=key)
    return key


def unregister(store: SubscriberStore, data: Any) -> bool:
    """Validate and delete a subscription. Returns False if it was not stored."""
    descriptor = validate_subscription(data)
    key = derive_key(descriptor.endpoint)
    removed = store.delete(key)
    log_event(
        logger,
        f"Subscription removed: {key}",
        event="subscriber_unregistered",
        key=key,
        existed=removed,
    )
    return removed
