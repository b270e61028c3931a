"""
Core domain models.

This package contains data types that are independent of any
specific pipeline stage.
"""

from .types import (
    HN_HOME_URL,
    DeliveryDescriptor,
    DeliveryOutcome,
    DeliveryResult,
    Item,
    Notification,
    ParsedPayload,
    PayloadResult,
    RawText,
    RunSummary,
    SubscriberRecord,
)

__all__ = [
    "HN_HOME_URL",
    "DeliveryDescriptor",
    "DeliveryOutcome",
    "DeliveryResult",
    "Item",
    "Notification",
    "ParsedPayload",
    "PayloadResult",
    "RawText",
    "RunSummary",
    "SubscriberRecord",
]
