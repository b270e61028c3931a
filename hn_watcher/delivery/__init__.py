"""
Notification delivery.

This package builds notification payloads and pushes them to
subscribers through a pluggable transport.
"""

from .payload import build_payload, notification_for, parse_payload, to_display
from .transport import (
    DeliveryTransport,
    LogTransport,
    WebPushTransport,
    available_transports,
    classify_status,
    create_transport,
)

__all__ = [
    "build_payload",
    "notification_for",
    "parse_payload",
    "to_display",
    "DeliveryTransport",
    "LogTransport",
    "WebPushTransport",
    "available_transports",
    "classify_status",
    "create_transport",
]
